from sqlalchemy import create_engine, Column, String, Integer, JSON, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
from agenda_scheduler.config.settings import get_settings

settings = get_settings()

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class ProjectModel(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False, default="")
    payload = Column(JSON, nullable=False)  # ProjectDTO document: settings, groups, curricula
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TrainingPlanModel(Base):
    __tablename__ = "training_plans"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False, default="")
    payload = Column(JSON, nullable=False)  # TrainingPlanDTO document: days and their modules
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EventModel(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    title = Column(String, nullable=False)
    start = Column(DateTime, nullable=False)  # naive UTC
    end = Column(DateTime, nullable=False)  # naive UTC
    event_type = Column(String, nullable=False)
    course_id = Column(Integer, nullable=True)
    color = Column(String, nullable=True)
    event_status = Column(String, nullable=False, default="scheduled")
    extended_props = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class EventGroupModel(Base):
    __tablename__ = "event_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    group_id = Column(Integer, nullable=False)


class EventAttendeeModel(Base):
    __tablename__ = "event_attendees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    enrollee_id = Column(Integer, nullable=False)
    attendance_status = Column(String, nullable=False, default="scheduled")
    created_by = Column(String, nullable=False, default="system")


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
