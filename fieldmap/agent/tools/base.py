"""
Abstract base class for capabilities using Template Method pattern.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Type
import logging

from pydantic import BaseModel, ConfigDict, ValidationError

from fieldmap.agent.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class AgentResult:
    """
    Outcome of one capability execution.

    ``data`` carries the outputs threaded into the next workflow step.
    """

    success: bool
    summary: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, summary: str, error: Optional[BaseException] = None, **data) -> 'AgentResult':
        """Failed result carrying the raw error in ``data``."""
        if error is not None:
            data.setdefault('error', str(error))
            data.setdefault('error_type', type(error).__name__)
        return cls(success=False, summary=summary, data=data)

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'summary': self.summary, 'data': self.data}


class CapabilityParams(BaseModel):
    """
    Base parameter model for capabilities.

    Keys inherited from earlier workflow steps that a capability does not
    declare are ignored.
    """

    model_config = ConfigDict(extra='ignore')


class Capability(ABC):
    """
    Abstract base class for all capabilities ("agents").

    Capabilities wrap fieldmap stages with:
    - Standardized execute() interface
    - Typed parameters validated at the call boundary
    - Error handling and logging

    Uses Template Method pattern - subclasses implement handle()
    while execute() handles validation and error handling.

    Class attributes:
        name: Unique registry name
        purpose: One-line description
        params_model: pydantic model validating the params dict
        forwards: Param keys copied into the output data on success, so
            later steps still see them
    """

    name: ClassVar[str] = ''
    purpose: ClassVar[str] = ''
    params_model: ClassVar[Type[CapabilityParams]] = CapabilityParams
    forwards: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)
        self.setup()

    def setup(self):
        """
        Override to perform capability-specific initialization.

        Called during __init__ after config is set.
        """
        pass

    @abstractmethod
    def handle(self, params: CapabilityParams, token: CancellationToken) -> AgentResult:
        """
        Run the capability on validated parameters.

        Args:
            params: Instance of ``params_model``
            token: Cooperative cancellation token

        Returns:
            AgentResult
        """
        pass

    def execute(
        self,
        params: Optional[Dict[str, Any]] = None,
        token: Optional[CancellationToken] = None
    ) -> AgentResult:
        """
        Execute with validation and error handling (Template Method).

        This is the main entry point that:
        1. Validates parameters
        2. Calls handle()
        3. Converts errors into a failed result
        4. Forwards declared params into the output data

        Never raises for capability errors.
        """
        params = params or {}
        token = token or CancellationToken()

        try:
            request = self.params_model.model_validate(params)
        except ValidationError as e:
            self.logger.error(f"{self.name}: invalid parameters: {e}")
            return AgentResult.failure(
                f"{self.name}: invalid parameters ({e.error_count()} errors)", error=e,
            )

        try:
            self.logger.info(f"Executing {self.name}")
            result = self.handle(request, token)

            if not isinstance(result, AgentResult):
                raise TypeError(f"{self.name} must return AgentResult, got {type(result).__name__}")

        except Exception as e:
            self.logger.error(f"{self.name} failed: {e}", exc_info=True)
            return AgentResult.failure(f"{self.name} failed: {e}", error=e)

        if result.success:
            for key in self.forwards:
                if key in params and key not in result.data:
                    result.data[key] = params[key]
            self.logger.info(f"{self.name} completed: {result.summary}")
        else:
            self.logger.warning(f"{self.name} reported failure: {result.summary}")

        return result

    @classmethod
    def get_info(cls) -> Dict[str, Any]:
        """Name, purpose and parameter overview of this capability."""
        return {
            'name': cls.name,
            'purpose': cls.purpose,
            'parameters': {
                field_name: {
                    'required': info.is_required(),
                    'description': info.description or '',
                }
                for field_name, info in cls.params_model.model_fields.items()
            },
        }
