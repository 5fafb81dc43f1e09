from app.core.database import SessionLocal, get_db

__all__ = ["get_db", "get_transactional_db"]


def get_transactional_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
