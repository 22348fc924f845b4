# pppk_exam/db/init_db.py
from pppk_exam.db.base import Base
from pppk_exam.db.session import engine
from pppk_exam import models  # noqa


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
