from stocksage.api.schemas.insight import InsightErrorResponse, InsightMessage, InsightRequest

__all__ = ["InsightErrorResponse", "InsightMessage", "InsightRequest"]
