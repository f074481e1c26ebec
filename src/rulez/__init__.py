"""RuleZ: policy enforcement for AI coding agent hooks.

RuleZ reads a YAML policy, evaluates it against the hook events an agent
emits, and answers each event with an allow, block, or inject decision.
"""

__version__ = "0.1.0"
