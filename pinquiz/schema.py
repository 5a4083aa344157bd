"""
Schema rendering for the Supabase SQL editor.

The tables come from ``pinquiz.models.tables``; the row level security
policies below are what keeps host-only mutations host-only, since player
and host clients talk to the same REST endpoint.
"""

from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable, CreateIndex
from pinquiz.models.tables import Base

RLS_POLICIES = """
ALTER TABLE quizzes ENABLE ROW LEVEL SECURITY;
ALTER TABLE questions ENABLE ROW LEVEL SECURITY;
ALTER TABLE options ENABLE ROW LEVEL SECURITY;
ALTER TABLE game_sessions ENABLE ROW LEVEL SECURITY;
ALTER TABLE game_players ENABLE ROW LEVEL SECURITY;
ALTER TABLE game_answers ENABLE ROW LEVEL SECURITY;

CREATE POLICY quizzes_owner_all ON quizzes
    FOR ALL USING (auth.uid() = user_id) WITH CHECK (auth.uid() = user_id);
CREATE POLICY quizzes_read ON quizzes FOR SELECT USING (true);

CREATE POLICY questions_owner_all ON questions
    FOR ALL USING (EXISTS (SELECT 1 FROM quizzes q WHERE q.id = quiz_id AND q.user_id = auth.uid()));
CREATE POLICY questions_read ON questions FOR SELECT USING (true);

CREATE POLICY options_owner_all ON options
    FOR ALL USING (EXISTS (
        SELECT 1 FROM questions qu JOIN quizzes q ON q.id = qu.quiz_id
        WHERE qu.id = question_id AND q.user_id = auth.uid()
    ));

CREATE POLICY game_sessions_read ON game_sessions FOR SELECT USING (true);
CREATE POLICY game_sessions_host_insert ON game_sessions
    FOR INSERT WITH CHECK (auth.uid() = host_id AND status = 'waiting');
CREATE POLICY game_sessions_host_update ON game_sessions
    FOR UPDATE USING (auth.uid() = host_id) WITH CHECK (auth.uid() = host_id);

CREATE POLICY game_players_read ON game_players FOR SELECT USING (true);
CREATE POLICY game_players_join ON game_players
    FOR INSERT WITH CHECK (EXISTS (
        SELECT 1 FROM game_sessions s WHERE s.id = session_id AND s.status = 'waiting'
    ));

CREATE POLICY game_answers_read ON game_answers FOR SELECT USING (true);
CREATE POLICY game_answers_submit ON game_answers
    FOR INSERT WITH CHECK (EXISTS (
        SELECT 1 FROM game_sessions s
        WHERE s.id = session_id AND s.status = 'active' AND s.current_question_index = question_index
    ));

-- Players read options through this view, which never exposes is_correct
CREATE VIEW player_options AS SELECT id, question_id, text, position FROM options;
GRANT SELECT ON player_options TO anon, authenticated;

ALTER PUBLICATION supabase_realtime ADD TABLE game_sessions, game_players, game_answers;
""".strip()


def render_tables() -> str:
    dialect = postgresql.dialect()
    statements = []
    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")
    return "\n\n".join(statements)


def render_schema() -> str:
    """Full SQL script: tables, indexes, row level security and realtime publication"""
    return render_tables() + "\n\n" + RLS_POLICIES + "\n"
