from caddycore.logs.decision_log import DecisionLog

__all__ = ["DecisionLog"]
