from ..extensions import db

# BIGINT keys on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY.
BigId = db.BigInteger().with_variant(db.Integer, "sqlite")
