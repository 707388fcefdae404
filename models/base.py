from sqlalchemy.orm import declarative_base

# Shared metadata for the reference school schema
Base = declarative_base()
