"""Database models for the user directory."""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Column, DateTime, Integer, String

db: SQLAlchemy = SQLAlchemy()


class DBUser(db.Model):  # type: ignore
    """
    Account table.

    +---------------------+--------------+------+-----+
    | Field               | Type         | Null | Key |
    +---------------------+--------------+------+-----+
    | user_id             | varchar(36)  | NO   | PRI |
    | email               | varchar(255) | NO   |     |
    | normalized_email    | varchar(255) | NO   | UNI |
    | username            | varchar(255) | NO   |     |
    | password_hash       | varchar(255) | YES  |     |
    | lockout_end         | datetime     | YES  |     |
    | access_failed_count | int          | NO   |     |
    | created             | datetime     | NO   |     |
    +---------------------+--------------+------+-----+
    """

    __tablename__ = 'users'

    user_id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False)
    normalized_email = Column(String(255), nullable=False, unique=True,
                              index=True)
    username = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=True)
    """``NULL`` for accounts created by federated sign-in."""
    lockout_end = Column(DateTime(timezone=True), nullable=True)
    access_failed_count = Column(Integer, nullable=False, default=0)
    created = Column(DateTime(timezone=True), nullable=False)
