from init_db import write_schema
from pinquiz.schema import render_schema, render_tables


class TestSchema:
    """SQL rendered for the Supabase SQL editor"""

    def test_all_tables_rendered(self):
        sql = render_tables()
        for table in ("quizzes", "questions", "options", "game_sessions", "game_players", "game_answers"):
            assert f"CREATE TABLE {table}" in sql

    def test_tables_created_before_dependents(self):
        sql = render_tables()
        assert sql.index("CREATE TABLE quizzes") < sql.index("CREATE TABLE questions")
        assert sql.index("CREATE TABLE game_sessions") < sql.index("CREATE TABLE game_answers")

    def test_one_answer_per_player_and_question(self):
        sql = render_tables()
        assert "CONSTRAINT unique_player_question_answer UNIQUE (session_id, player_id, question_index)" in sql

    def test_open_pins_are_unique(self):
        sql = render_tables()
        assert "CREATE UNIQUE INDEX uq_open_game_pin ON game_sessions (game_pin) WHERE status <> 'completed'" in sql

    def test_one_correct_option_per_question(self):
        sql = render_tables()
        assert "CREATE UNIQUE INDEX uq_one_correct_option ON options (question_id) WHERE is_correct" in sql

    def test_question_index_only_while_active(self):
        sql = render_tables()
        assert "(status = 'active') = (current_question_index IS NOT NULL)" in sql

    def test_policies_and_realtime_publication(self):
        sql = render_schema()
        assert "ENABLE ROW LEVEL SECURITY" in sql
        assert "CREATE POLICY game_sessions_host_update" in sql
        assert "CREATE VIEW player_options AS SELECT id, question_id, text, position FROM options" in sql
        assert "ALTER PUBLICATION supabase_realtime" in sql

    def test_init_script_writes_schema_file(self, tmp_path):
        path = write_schema(str(tmp_path / "create_tables.sql"))

        with open(path, encoding="utf-8") as f:
            sql = f.read()
        assert "CREATE UNIQUE INDEX uq_open_game_pin" in sql
        assert "CREATE POLICY game_answers_submit" in sql
