from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.rate_limit import llm_limiter, upload_limiter
from app.core.security import TokenPayload, verify_token

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[TokenPayload, Depends(verify_token)]

# Rate-limited variants of CurrentUser
UploadRateLimitedUser = Annotated[TokenPayload, Depends(upload_limiter)]
LLMRateLimitedUser = Annotated[TokenPayload, Depends(llm_limiter)]
