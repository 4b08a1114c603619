import logging
import os
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from core.firebase import get_firestore_client, verify_id_token

logger = logging.getLogger(__name__)

# Standard credentials exception
CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

# Roles Allowed To Review Visits Across Workers
MANAGER_ROLES = [
    role.strip()
    for role in os.getenv("MANAGER_ROLES", "owner,property_manager").split(",")
    if role.strip()
]


# Verifies Firebase Token & Loads Profile; uid Is the Trusted Worker Id
def get_current_user(request: Request) -> dict:
    # 1) Extract & Analyze Authorization Header
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise CREDENTIALS_EXCEPTION
    token = auth_header.split(" ", 1)[1]

    # 2) Verify This Points to a Real User Account
    try:
        decoded = verify_id_token(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token"
        )
    uid = decoded.get("uid")
    if not uid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token did not contain uid"
        )

    # 3) Fetch the Firestore user profile
    try:
        snapshot = get_firestore_client().collection("users").document(uid).get()
    except Exception as e:
        logger.error(f"Firestore error fetching profile for {uid}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not fetch user profile.",
        )
    if not snapshot.exists:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found in Firestore",
        )
    profile = snapshot.to_dict()

    return {
        "uid": uid,
        "name": profile.get("displayName", ""),
        "email": profile.get("email", ""),
        "role": profile.get("role", ""),
    }


# Manager Role Check Dependency
def require_manager_role(
    current_user: Annotated[dict, Depends(get_current_user)]
) -> dict:
    if current_user.get("role") not in MANAGER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User doesn't have sufficient privileges for this action",
        )
    return current_user
