from fastapi import Header, HTTPException, Depends, Cookie
from .db import get_conn, set_warehouse_context
from .records import RequestContext
from datetime import datetime, timezone
from typing import Optional


SESSION_COOKIE_NAME = "fabric_erp_session"


def _extract_session_token(authorization: Optional[str], cookie_token: Optional[str]) -> str:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1]
    if cookie_token:
        return cookie_token
    raise HTTPException(status_code=401, detail="missing token")


def get_session(
    authorization: Optional[str] = Header(None),
    cookie_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
):
    token = _extract_session_token(authorization, cookie_token)
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT s.id AS session_id, s.user_id, u.company_id, s.expires_at, s.is_active
                FROM auth_sessions s
                JOIN users u ON u.id = s.user_id
                WHERE s.token = %s
                """,
                (token,),
            )
            row = cur.fetchone()
            now = datetime.now(timezone.utc)
            if not row or not row["is_active"] or row["expires_at"] < now:
                raise HTTPException(status_code=401, detail="invalid token")
            return {
                "session_id": row["session_id"],
                "user_id": str(row["user_id"]),
                "company_id": str(row["company_id"]),
            }


def get_request_context(
    x_warehouse_id: Optional[str] = Header(None, alias="X-Warehouse-Id"),
    session=Depends(get_session),
) -> RequestContext:
    """
    Warehouse scope is an explicit header, never implicit session state, and is
    checked against the user's warehouse grants.
    """
    x_warehouse_id = (x_warehouse_id or "").strip().lower()
    if not x_warehouse_id:
        raise HTTPException(status_code=400, detail="missing warehouse id")
    with get_conn() as conn:
        set_warehouse_context(conn, session["company_id"], x_warehouse_id)
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT 1
                FROM user_warehouses
                WHERE user_id = %s AND warehouse_id = %s
                """,
                (session["user_id"], x_warehouse_id),
            )
            if not cur.fetchone():
                raise HTTPException(status_code=403, detail="no warehouse access")
    return RequestContext(
        company_id=session["company_id"],
        warehouse_id=x_warehouse_id,
        user_id=session["user_id"],
    )
