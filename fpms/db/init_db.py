# fpms/db/init_db.py
from fpms import models  # noqa
from fpms.db.base import Base
from fpms.db.session import engine


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
