"""
Rules service: evaluates three-valued rule trees against caller-supplied facts.
"""

import uuid
from typing import Dict, Any
from datetime import datetime

from shared.base_service import BaseService
from shared.errors import RuleNotFoundError

from .rules.engine import RuleEngine
from .rules.models import (
    StoredRule, RuleCheckRequest, FactsRequest,
    RuleCreateRequest, RuleUpdateRequest, RuleResponse, RuleListResponse
)
from .rules.serialization import rule_from_dict, rule_to_dict, result_to_dict


def _to_response(stored: StoredRule) -> RuleResponse:
    return RuleResponse(
        rule_id=stored.rule_id,
        name=stored.name,
        rule=rule_to_dict(stored.rule),
        created_at=stored.created_at,
        updated_at=stored.updated_at
    )


class RulesService(BaseService):
    """Rules service implementation."""

    def __init__(self, **config_overrides):
        super().__init__("rules", 8020, **config_overrides)

        self.rule_engine = RuleEngine(metrics=self.metrics)
        if self.config.rules_file:
            self.rule_engine.load_definitions(self.config.rules_file)

        self._setup_rules_routes()

    def _setup_rules_routes(self):
        """Set up rules-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "rules",
                "message": "Rules Service - three-valued rule tree evaluation",
                "version": "1.0.0",
                "capabilities": ["rule_engine", "registry", "explainable_results"]
            }

        @self.app.post("/rules/check")
        async def check_rule(request: RuleCheckRequest) -> Dict[str, Any]:
            """Check an inline rule tree against facts."""
            rule = rule_from_dict(request.rule)
            result = self.rule_engine.check(rule, request.facts)
            return result_to_dict(result)

        @self.app.get("/rules/stats")
        async def get_stats():
            """Get rules service statistics."""
            return {
                "engine": self.rule_engine.get_engine_stats(),
                "timestamp": datetime.now().isoformat()
            }

        @self.app.get("/rules", response_model=RuleListResponse)
        async def get_rules():
            """List registered rules."""
            rules = [_to_response(stored) for stored in self.rule_engine.list_rules()]
            return RuleListResponse(rules=rules, total=len(rules))

        @self.app.post("/rules", response_model=RuleResponse)
        async def create_rule(request: RuleCreateRequest):
            """Register a rule tree."""
            rule = rule_from_dict(request.rule)
            rule_id = request.rule_id or str(uuid.uuid4())
            stored = self.rule_engine.add_rule(rule_id, rule, name=request.name)
            return _to_response(stored)

        @self.app.get("/rules/{rule_id}", response_model=RuleResponse)
        async def get_rule(rule_id: str):
            """Get a registered rule."""
            stored = self.rule_engine.get_rule(rule_id)
            if stored is None:
                raise RuleNotFoundError(rule_id)
            return _to_response(stored)

        @self.app.put("/rules/{rule_id}", response_model=RuleResponse)
        async def update_rule(rule_id: str, request: RuleUpdateRequest):
            """Replace a registered rule tree."""
            rule = rule_from_dict(request.rule)
            stored = self.rule_engine.update_rule(rule_id, rule, name=request.name)
            return _to_response(stored)

        @self.app.delete("/rules/{rule_id}")
        async def delete_rule(rule_id: str):
            """Delete a registered rule."""
            if not self.rule_engine.remove_rule(rule_id):
                raise RuleNotFoundError(rule_id)
            return {"success": True, "message": "Rule deleted successfully"}

        @self.app.post("/rules/{rule_id}/check")
        async def check_registered_rule(rule_id: str, request: FactsRequest) -> Dict[str, Any]:
            """Check a registered rule against facts."""
            result = self.rule_engine.evaluate(rule_id, request.facts)
            return result_to_dict(result)

    async def _check_dependencies(self) -> Dict[str, Any]:
        """The rules service has no external dependencies."""
        return {"registry": "ok"}


def create_app(**config_overrides):
    """Create rules service application."""
    service = RulesService(**config_overrides)
    return service.app


if __name__ == "__main__":
    service = RulesService()
    service.run()
