from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase

from reach_planning.config import DATABASE_URL

# check_same_thread is a sqlite-only flag; the import worker uses its own
# connection from a background thread.
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
	pass


@contextmanager
def session_scope(factory: sessionmaker | None = None) -> Iterator[Session]:
	"""Unit of work: commit on success, rollback on error, always close.

	The factory is looked up at call time so tests can rebind ``SessionLocal``.
	"""
	session = (factory or SessionLocal)()
	try:
		yield session
		session.commit()
	except Exception:
		session.rollback()
		raise
	finally:
		session.close()
