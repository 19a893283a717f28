"""BranchChat - LLM chat client with branchable conversation history."""

__version__ = "0.1.0"
