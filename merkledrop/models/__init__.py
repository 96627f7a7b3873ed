"""
Types here are instantiated as subclasses of pydantic's `BaseModel`.
This means we get runtime deserialization and validation for free just by using type declarations
and a couple of pydantic helpers.

Use these in your code as python objects, then serialize to json with `.model_dump(mode="json")`
"""

from merkledrop.models.types import *
from merkledrop.models.Config import *
from merkledrop.models.Classification import *
from merkledrop.models.Pool import *
from merkledrop.models.Summary import *
from merkledrop.models.Claim import *
from merkledrop.models.DB import *
from merkledrop.models.Writer import *
