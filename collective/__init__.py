"""
Collective multi-perspective analysis.

Import the orchestrator and its collaborators directly from here:

```python
from collective import Orchestrator, StaticRolePolicy, StubModelClient

orchestrator = Orchestrator(StubModelClient(), role_policy=StaticRolePolicy())
run = await orchestrator.run_query("How should we approach rapid decarbonization?")
print(run.synthesis.text)
```
"""

from .errors import (  # noqa: F401
    InvalidInputError,
    OrchestrationError,
    RoleSelectionError,
    SpecialistCallError,
    SynthesisError,
)
from .model_client import (  # noqa: F401
    AutogenModelClient,
    CallableModelClient,
    ModelClient,
    StubModelClient,
    build_model_client,
)
from .models import Analysis, RepositoryStatus, Role, RoleSelection, Run, RunMetadata, Synthesis  # noqa: F401
from .orchestrator import Orchestrator  # noqa: F401
from .repository import RoleRepository, RunHistory, normalize_role_name  # noqa: F401
from .role_selection import KeywordRolePolicy, RoleSelectionPolicy, StaticRolePolicy, build_role_policy  # noqa: F401
from .settings import OrchestratorSettings  # noqa: F401

__all__ = [
    "Analysis",
    "AutogenModelClient",
    "CallableModelClient",
    "InvalidInputError",
    "KeywordRolePolicy",
    "ModelClient",
    "OrchestrationError",
    "Orchestrator",
    "OrchestratorSettings",
    "RepositoryStatus",
    "Role",
    "RoleRepository",
    "RoleSelection",
    "RoleSelectionError",
    "RoleSelectionPolicy",
    "Run",
    "RunHistory",
    "RunMetadata",
    "SpecialistCallError",
    "StaticRolePolicy",
    "StubModelClient",
    "Synthesis",
    "SynthesisError",
    "build_model_client",
    "build_role_policy",
    "normalize_role_name",
]
