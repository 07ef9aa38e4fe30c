from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_cors import CORS
import pymysql

from .exceptions import RecordNotFound

pymysql.install_as_MySQLdb()

db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()

class BaseModel(db.Model):
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())
    updated_at = db.Column(db.DateTime, default=db.func.current_timestamp(),
                          onupdate=db.func.current_timestamp())

    @classmethod
    def find_or_raise(cls, id, label=None):
        """Row by primary key; RecordNotFound when missing."""
        instance = db.session.get(cls, id)
        if instance is None:
            raise RecordNotFound(f"{label or cls.__name__} {id} not found")
        return instance
