# wipflow/api/deps.py

from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..services.authorization import get_authorizer


def current_operator(x_operator: Optional[str] = Header(default=None)) -> str:
    return x_operator or "Operator"


def require(module: str, action: str):
    """Dependency factory: reject the call unless the operator may do `action` on `module`."""

    def _check(operator: str = Depends(current_operator)) -> str:
        if not get_authorizer().can(operator, module, action):
            raise HTTPException(status_code=403, detail=f"{operator} may not {action} {module}")
        return operator

    return _check
