"""
Agent tools: definitions and dispatch for tool-calling mode.

Tools: verify_information, update_verification_status, report_cyber_threat,
check_threat_patterns, escalate_information_request, get_official_info.

The set is closed: ToolName enumerates it, TOOLS maps each name to its
(definition, handler) pair, and any other name resolves to UNKNOWN_TOOL.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from govverify.agent import handlers
from govverify.agent.context import ToolContext
from govverify.agent.handlers import ToolHandler

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    VERIFY_INFORMATION = "verify_information"
    UPDATE_VERIFICATION_STATUS = "update_verification_status"
    REPORT_CYBER_THREAT = "report_cyber_threat"
    CHECK_THREAT_PATTERNS = "check_threat_patterns"
    ESCALATE_INFORMATION_REQUEST = "escalate_information_request"
    GET_OFFICIAL_INFO = "get_official_info"


@dataclass(frozen=True)
class Tool:
    definition: Mapping[str, Any]
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition["function"]["name"]


def _function(name: ToolName, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    """OpenAI function-calling definition."""
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


VERIFY_INFORMATION_TOOL = _function(
    ToolName.VERIFY_INFORMATION,
    "ALWAYS use this tool to verify claims or answer factual questions about Sierra Leone government, "
    "policies, health, security, finances, or any official information. Use whenever the user asks "
    "'Is this true?', 'Can you check...', 'When did...', 'How much...', or any factual question. "
    "This queries the official government knowledge base. DO NOT answer factual questions from "
    "memory - ALWAYS call this tool first.",
    {
        "claim": {
            "type": "string",
            "description": "The claim or information to verify (e.g., 'Government is banning okada bikes')",
        },
        "category": {
            "type": "string",
            "enum": ["Government Policy", "Health", "Security", "Financial", "Legal", "Administrative", "Other"],
            "description": "The category of information being verified",
        },
    },
    ["claim", "category"],
)

UPDATE_VERIFICATION_STATUS_TOOL = _function(
    ToolName.UPDATE_VERIFICATION_STATUS,
    "Record your judgment on a verification after analyzing the retrieval response returned by "
    "verify_information. Call this once per verification.",
    {
        "verificationId": {"type": "number", "description": "The ID of the verification record to update"},
        "status": {
            "type": "string",
            "enum": ["VERIFIED", "FALSE", "PARTIALLY_TRUE", "UNVERIFIED"],
            "description": "Your judgment on the verification status",
        },
        "confidence": {
            "type": "string",
            "enum": ["HIGH", "MEDIUM", "LOW"],
            "description": "Your confidence level in this judgment",
        },
        "explanation": {"type": "string", "description": "Brief explanation of why you made this judgment"},
    },
    ["verificationId", "status", "confidence", "explanation"],
)

REPORT_CYBER_THREAT_TOOL = _function(
    ToolName.REPORT_CYBER_THREAT,
    "Log a cyber threat, scam, or fraud report. Use this when a user describes being targeted by or "
    "witnessing a digital crime. Returns a report reference number.",
    {
        "threatType": {
            "type": "string",
            "enum": [
                "Romance Scam",
                "Investment Fraud",
                "Impersonation",
                "Phishing",
                "Mobile Money Fraud",
                "Job Scam",
                "Lottery/Prize Scam",
                "Blackmail/Sextortion",
                "Other",
            ],
            "description": "The type of cyber threat",
        },
        "description": {"type": "string", "description": "Detailed description of what happened"},
        "platform": {
            "type": "string",
            "description": "Platform where the threat occurred (e.g., Facebook, WhatsApp, SMS)",
        },
        "amountLost": {"type": "number", "description": "Amount of money lost (in Leones), if any"},
        "perpetratorContact": {
            "type": "string",
            "description": "Phone number, email, or social media handle of the perpetrator (if known)",
        },
        "dateOccurred": {
            "type": "string",
            "description": "When the incident occurred (e.g., 'today', 'last week', '2024-12-01')",
        },
        "isUrgent": {
            "type": "boolean",
            "description": "Whether this is an ongoing threat requiring immediate attention",
        },
    },
    ["threatType", "description", "platform"],
)

CHECK_THREAT_PATTERNS_TOOL = _function(
    ToolName.CHECK_THREAT_PATTERNS,
    "Check if a phone number, account, or contact has been reported in previous scam/threat reports.",
    {"contactInfo": {"type": "string", "description": "Phone number, email, or social media handle to check"}},
    ["contactInfo"],
)

ESCALATE_INFORMATION_REQUEST_TOOL = _function(
    ToolName.ESCALATE_INFORMATION_REQUEST,
    "Escalate an information request when official data is not available in the system. Use when the "
    "user asks about government services, policies, or procedures and the knowledge base has no "
    "results. Do NOT use for personal questions, off-topic questions, or casual conversation. This "
    "records a data gap so government can add the missing information.",
    {
        "topic": {
            "type": "string",
            "description": "The specific question or topic the user is asking about (original user query)",
        },
        "category": {
            "type": "string",
            "enum": [
                "HEALTH",
                "EDUCATION",
                "LEGAL",
                "FINANCIAL",
                "ADMINISTRATIVE",
                "SECURITY",
                "EMPLOYMENT",
                "INFRASTRUCTURE",
                "ENVIRONMENT",
                "SOCIAL_SERVICES",
                "GENERAL",
            ],
            "description": "Category of the information request",
        },
        "priority": {
            "type": "string",
            "enum": ["NORMAL", "HIGH", "URGENT"],
            "description": "NORMAL (general info), HIGH (important service), URGENT (time-sensitive/emergency)",
        },
        "ministry": {
            "type": "string",
            "description": "Relevant ministry that should have this information (e.g., 'Ministry of Health')",
        },
        "reason": {
            "type": "string",
            "description": "Brief explanation of why information is not available",
        },
    },
    ["topic", "category", "reason"],
)

GET_OFFICIAL_INFO_TOOL = _function(
    ToolName.GET_OFFICIAL_INFO,
    "Retrieve official government information on a specific topic (e.g., passport fees, office hours, "
    "document requirements).",
    {
        "topic": {
            "type": "string",
            "description": "The topic to get official information about (e.g., 'passport fees')",
        },
        "ministry": {"type": "string", "description": "The relevant ministry or department (optional)"},
    },
    ["topic"],
)


TOOLS: Mapping[ToolName, Tool] = MappingProxyType({
    ToolName.VERIFY_INFORMATION: Tool(VERIFY_INFORMATION_TOOL, handlers.verify_information),
    ToolName.UPDATE_VERIFICATION_STATUS: Tool(UPDATE_VERIFICATION_STATUS_TOOL, handlers.update_verification_status),
    ToolName.REPORT_CYBER_THREAT: Tool(REPORT_CYBER_THREAT_TOOL, handlers.report_cyber_threat),
    ToolName.CHECK_THREAT_PATTERNS: Tool(CHECK_THREAT_PATTERNS_TOOL, handlers.check_threat_patterns),
    ToolName.ESCALATE_INFORMATION_REQUEST: Tool(ESCALATE_INFORMATION_REQUEST_TOOL, handlers.escalate_information_request),
    ToolName.GET_OFFICIAL_INFO: Tool(GET_OFFICIAL_INFO_TOOL, handlers.get_official_info),
})

# Catalog sent to the model on every completion
AGENT_TOOLS: list[dict[str, Any]] = [dict(tool.definition) for tool in TOOLS.values()]


async def _unknown_tool(arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
    return handlers.failure("Unknown function", "Sorry, that operation is not available.")


UNKNOWN_TOOL = Tool(
    definition=MappingProxyType({"type": "function", "function": {"name": "unknown", "description": "", "parameters": {}}}),
    handler=_unknown_tool,
)


def resolve_tool(name: str) -> Tool:
    """Look up a tool by name; anything outside the closed set is UNKNOWN_TOOL."""
    try:
        return TOOLS[ToolName(name)]
    except ValueError:
        return UNKNOWN_TOOL


async def execute_tool(name: str, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
    """
    Execute a tool by name with the given arguments. Returns a result dict for the LLM; never raises.
    """
    tool = resolve_tool(name)
    if tool is UNKNOWN_TOOL:
        logger.error("[tools] unknown function called name=%r", name)
    else:
        logger.info("[tools] execute_tool name=%r arguments=%r context=%s", name, arguments, ctx.log_fields())
    try:
        result = await tool.handler(arguments, ctx)
    except Exception as e:
        logger.exception("[tools] execute_tool name=%r failed", name)
        return handlers.failure(str(e) or e.__class__.__name__, "Unable to complete this operation at this time.")
    logger.info("[tools] execute_tool name=%r success=%s", name, result.get("success"))
    return result
