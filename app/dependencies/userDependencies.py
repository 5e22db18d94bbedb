from typing import Annotated
from fastapi import Depends
from app.modules.auth.dependencies import get_principal
from app.modules.auth.schemas import Principal

principal_dependency = Annotated[Principal, Depends(get_principal)]
