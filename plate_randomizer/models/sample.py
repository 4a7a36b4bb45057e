"""Sample data models."""
from pydantic import BaseModel, ConfigDict
from typing import Dict, Optional


class Sample(BaseModel):
    """A labeled experimental sample."""
    model_config = ConfigDict(frozen=True)
    
    name: str  # stable identifier, e.g. "S001"
    metadata: Dict[str, str] = {}
    
    def get(self, attribute: str) -> Optional[str]:
        """Get an attribute value, None when absent."""
        return self.metadata.get(attribute)
