from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_backend.core import config


def _use_immediate_transactions(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write, which lets two bookers
    # both read a slot count before either inserts. Take the write lock up front.
    @event.listens_for(engine, 'connect')
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _begin_immediate(connection):
        connection.exec_driver_sql('BEGIN IMMEDIATE')


def create_database_engine(database_url: str, **kwargs) -> Engine:
    if database_url.startswith('sqlite'):
        connect_args = kwargs.pop('connect_args', {})
        connect_args.setdefault('check_same_thread', False)
        connect_args.setdefault('timeout', config.SQLITE_BUSY_TIMEOUT_SECONDS)
        database_engine = create_engine(database_url, connect_args=connect_args, **kwargs)
        _use_immediate_transactions(database_engine)
        return database_engine

    return create_engine(database_url, pool_pre_ping=True, **kwargs)


engine = create_database_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False
_appointment_schema_checked = False


def ensure_schedule_schema(bind: Engine | None = None) -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    bind = bind or engine
    with _schema_lock:
        if _schedule_schema_checked:
            return

        inspector = inspect(bind)

        if 'schedule_templates' not in inspector.get_table_names():
            _schedule_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_schedule_templates_weekday_start '
                    'ON schedule_templates(weekday, start_time)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_schedule_templates_room_weekday '
                    'ON schedule_templates(room_id, weekday)'
                )
            )

        _schedule_schema_checked = True


def ensure_appointment_schema(bind: Engine | None = None) -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    bind = bind or engine
    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('parent_appointment_id', 'ALTER TABLE appointments ADD COLUMN parent_appointment_id INTEGER'),
            ('status_changed_at', 'ALTER TABLE appointments ADD COLUMN status_changed_at TIMESTAMP'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_slot_status '
                    'ON appointments(schedule_id, appointment_date, status)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_patient_date '
                    'ON appointments(patient_id, appointment_date)'
                )
            )

        _appointment_schema_checked = True
