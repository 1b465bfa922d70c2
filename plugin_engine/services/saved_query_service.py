from typing import Optional

from sqlmodel import Session, select

from plugin_engine.integrations.errors import SavedQueryNotFoundError
from plugin_engine.models.models import SavedQuery


def list_saved_queries(
    session: Session,
    user_id: int,
    plugin_name: Optional[str] = None,
    instance_id: Optional[str] = None,
):
    statement = select(SavedQuery).where(SavedQuery.user_id == user_id)
    if plugin_name:
        statement = statement.where(SavedQuery.plugin_name == plugin_name)
    if instance_id:
        statement = statement.where(SavedQuery.instance_id == instance_id)
    return session.exec(statement.order_by(SavedQuery.id)).all()


def get_saved_query(session: Session, query_id: int, user_id: int) -> SavedQuery:
    """Fetch a saved query owned by ``user_id``; raises ``SavedQueryNotFoundError`` otherwise."""
    saved = session.exec(
        select(SavedQuery).where(SavedQuery.id == query_id, SavedQuery.user_id == user_id)
    ).first()
    if saved is None:
        raise SavedQueryNotFoundError(query_id)
    return saved


def create_saved_query(
    session: Session,
    *,
    user_id: int,
    plugin_name: str,
    instance_id: str,
    name: str,
    query: str,
    method: str = "GET",
    description: Optional[str] = None,
) -> SavedQuery:
    saved = SavedQuery(
        user_id=user_id,
        plugin_name=plugin_name,
        instance_id=instance_id,
        name=name,
        query=query,
        method=method,
        description=description or f"Saved query for {plugin_name}",
    )
    session.add(saved)
    session.commit()
    session.refresh(saved)
    return saved
