# apiscaffold/schemas/base.py
from pydantic import BaseModel as _BaseModel, ConfigDict

class BaseModel(_BaseModel):
    model_config = ConfigDict(protected_namespaces=(), populate_by_name=True)
