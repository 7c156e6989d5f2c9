import sqlite3

from portal import db


def test_init_db_runs_alembic_migrations(tmp_path) -> None:
    db_path = tmp_path / "migrations.db"
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    try:
        db.init_db(connection)
        tables = {
            row["name"]
            for row in connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert "alembic_version" in tables
        for table in (
            "organisations",
            "users",
            "roles",
            "user_roles",
            "sessions",
            "courses",
            "course_modules",
            "course_lessons",
            "workflow_categories",
            "workflow_departments",
            "workflows",
            "book_workflow_departments",
            "book_workflow_categories",
            "books",
            "book_workflows",
            "invitations",
            "import_logs",
        ):
            assert table in tables
    finally:
        connection.close()


def test_migrations_seed_roles_and_departments(tmp_path) -> None:
    db_path = tmp_path / "seeds.db"
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    try:
        db.init_db(connection)
        db.init_db(connection)
        roles = [
            row["name"]
            for row in connection.execute("SELECT name FROM roles ORDER BY id").fetchall()
        ]
        departments = [
            (row["name"], row["slug"])
            for row in connection.execute(
                "SELECT name, slug FROM book_workflow_departments ORDER BY sort_order"
            ).fetchall()
        ]
    finally:
        connection.close()

    assert roles == ["platform_admin", "org_admin", "org_member"]
    assert len(departments) == 7
    assert ("HR / People", "hr-people") in departments
    assert departments[0] == ("Sales", "sales")


def test_import_log_indexes_exist_after_migrations(tmp_path) -> None:
    db_path = tmp_path / "indexes.db"
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    try:
        db.init_db(connection)
        import_log_indexes = {
            row["name"]
            for row in connection.execute("PRAGMA index_list('import_logs')").fetchall()
        }
        invitation_indexes = {
            row["name"]
            for row in connection.execute("PRAGMA index_list('invitations')").fetchall()
        }
    finally:
        connection.close()

    assert "ix_import_logs_kind_started_at" in import_log_indexes
    assert "ix_invitations_organisation_id" in invitation_indexes
