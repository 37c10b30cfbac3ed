"""Run the account service with uvicorn.

Usage:
    python -m accounts
"""

import uvicorn

from accounts.app.core.config import settings

if __name__ == "__main__":
    uvicorn.run("accounts.app.main:app", host="0.0.0.0", port=settings.port)
