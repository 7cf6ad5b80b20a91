"""
MockLoop - AI Mock-Interview Orchestration Engine

Runs voice-first technical interviews: rotates across LLM providers,
narrates the interviewer, evaluates answers and code, and produces a
scored result with study suggestions.
"""

__version__ = "0.1.0"
__author__ = "MockLoop Team"
