"""
Handler Router - dispatch a classified query to its domain handler.

Every handler shares the signature
    handler(analysis, profile, records) -> HandlerResult
and is selected by `QueryAnalysis.primaryIntent`. A handler exception
never escapes this module: it is logged and turned into a degraded
HandlerResult (success=False, no insights, explanatory summary) so the
pipeline can still assemble a response.

Usage:
    result = route_query(analysis, profile, records)
"""

import logging
from typing import Callable, Dict, Mapping, Optional, Sequence

from civicpulse.models import HandlerResult, Intent, QueryAnalysis, Record, StatisticalProfile
from civicpulse.services.knowledge_handler import handle_knowledge
from civicpulse.services.notification_handler import handle_notification
from civicpulse.services.operations_handler import handle_operations

logger = logging.getLogger(__name__)

Handler = Callable[[QueryAnalysis, StatisticalProfile, Sequence[Record]], HandlerResult]

HANDLERS: Dict[Intent, Handler] = {
    Intent.KNOWLEDGE: handle_knowledge,
    Intent.NOTIFICATION: handle_notification,
    Intent.OPERATIONS: handle_operations,
}

HANDLER_NAMES: Dict[Intent, str] = {
    Intent.KNOWLEDGE: 'Knowledge analysis',
    Intent.NOTIFICATION: 'Notification targeting',
    Intent.OPERATIONS: 'System status',
}


def degraded_result(intent: Intent, error: Exception) -> HandlerResult:
    """Error-shaped HandlerResult for a handler that raised."""
    name = HANDLER_NAMES.get(intent, 'Query')
    return HandlerResult(
        handler=intent,
        success=False,
        summaryText=(
            f'{name} could not be completed: {error}. '
            'Please try again or rephrase the question.'
        ),
        error=str(error),
    )


def route_query(
    analysis: QueryAnalysis,
    profile: StatisticalProfile,
    records: Sequence[Record],
    handlers: Optional[Mapping[Intent, Handler]] = None,
) -> HandlerResult:
    """
    Run the handler for the query's primary intent.

    Args:
        analysis: Classified query.
        profile: Statistical profile of `records`.
        records: Full record set.
        handlers: Optional override of the intent -> handler table.

    Returns:
        The handler's HandlerResult, or a degraded one if it raised.
    """
    table = handlers if handlers is not None else HANDLERS
    intent = analysis.primaryIntent
    handler = table.get(intent, table[Intent.KNOWLEDGE])
    logger.info(f"Routing {intent.value}/{analysis.queryType.value} query to {handler.__name__}")

    try:
        return handler(analysis, profile, records)
    except Exception as e:
        logger.error(f"Handler {handler.__name__} failed: {e}", exc_info=True)
        return degraded_result(intent, e)
