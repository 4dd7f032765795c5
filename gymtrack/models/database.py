import sqlite3
from contextlib import contextmanager

from flask import current_app, has_app_context


def get_db_connection(db_path='gymtrack.db'):
    """Get database connection with row factory and FK enabled"""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _log_db_error(error, query, params):
    if has_app_context():
        current_app.logger.error(f"DB Error: {error} | Query: {query} | Params: {params}")


def execute_query(query, params=(), db_path='gymtrack.db', fetch=False):
    """Execute a database query with optional parameters"""
    conn = get_db_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute(query, params)
        if fetch:
            return cursor.fetchall()
        conn.commit()
        return cursor.lastrowid
    except sqlite3.Error as e:
        _log_db_error(e, query, params)
        raise
    finally:
        conn.close()


@contextmanager
def transaction(db_path='gymtrack.db'):
    """
    Yield a connection inside a ``BEGIN IMMEDIATE`` transaction.

    The write lock is taken up front, so a read-then-write sequence run in
    here cannot interleave with another writer on the same database file.
    Commits on normal exit, rolls back on any exception.
    """
    conn = sqlite3.connect(db_path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def init_db(db_path='gymtrack.db'):
    """Initialize database with all required tables"""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    # System-wide default SMTP settings (single row)
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS system_settings (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            smtp_host TEXT,
            smtp_port INTEGER,
            smtp_username TEXT,
            smtp_password TEXT,
            smtp_from TEXT
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS gyms (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            formatted_gym_id TEXT UNIQUE NOT NULL,
            owner_email TEXT,
            session_time_hours INTEGER,
            max_capacity INTEGER,
            smtp_host TEXT,
            smtp_port INTEGER,
            smtp_username TEXT,
            smtp_password TEXT,
            smtp_from TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS plans (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            gym_id INTEGER NOT NULL,
            plan_id_text TEXT NOT NULL,
            plan_name TEXT NOT NULL,
            price DECIMAL(10,2) NOT NULL,
            duration_months INTEGER,
            is_active BOOLEAN DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (gym_id) REFERENCES gyms (id)
        )
    ''')
    cursor.execute('CREATE UNIQUE INDEX IF NOT EXISTS idx_plans_gym_code ON plans (gym_id, plan_id_text)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            gym_id INTEGER NOT NULL,
            plan_id INTEGER,
            member_id TEXT NOT NULL,
            name TEXT NOT NULL,
            email TEXT,
            phone_number TEXT,
            age INTEGER,
            membership_status TEXT DEFAULT 'active',
            membership_type TEXT,
            plan_price DECIMAL(10,2),
            join_date TEXT,
            expiry_date TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (gym_id, member_id),
            FOREIGN KEY (gym_id) REFERENCES gyms (id),
            FOREIGN KEY (plan_id) REFERENCES plans (id)
        )
    ''')

    # Check-ins are deleted by the owning member, never by FK cascade
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS check_ins (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_table_id INTEGER NOT NULL,
            gym_id INTEGER NOT NULL,
            check_in_time TEXT NOT NULL,
            check_out_time TEXT,
            created_at TEXT,
            FOREIGN KEY (member_table_id) REFERENCES members (id),
            FOREIGN KEY (gym_id) REFERENCES gyms (id)
        )
    ''')
    cursor.execute('''
        CREATE INDEX IF NOT EXISTS idx_check_ins_active
        ON check_ins (gym_id, member_table_id, check_out_time)
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS announcements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            gym_id INTEGER NOT NULL,
            formatted_gym_id TEXT NOT NULL,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT,
            FOREIGN KEY (gym_id) REFERENCES gyms (id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS email_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            recipient_email TEXT NOT NULL,
            subject TEXT NOT NULL,
            body TEXT,
            status TEXT DEFAULT 'pending' CHECK (status IN ('pending', 'sent', 'failed', 'logged')),
            sent_at TIMESTAMP,
            error_message TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    conn.commit()
    conn.close()
