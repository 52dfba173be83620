# llm_service.py
import google.generativeai as genai
import logging
import json
from typing import Dict, Any, Optional

from config import settings

log = logging.getLogger('llm_service')
log.setLevel(logging.DEBUG if settings.DEBUG_MODE else logging.INFO)
if not log.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
    handler.setFormatter(formatter)
    log.addHandler(handler)

COULD_NOT_ANALYZE = ("We could not analyze the provided data. Please upload a CSV with clear "
                     "income and expense columns and try again.")
NOT_CONFIGURED = "AI suggestions are unavailable: the language model is not configured."

BUDGET_SECTIONS = ('income', 'expenses', 'savings')

model = None
is_configured = False


def configure_model(api_key: Optional[str] = None, model_name: Optional[str] = None) -> bool:
    """(Re)configure the Gemini client. Returns True when a model is ready."""
    global model, is_configured
    api_key = api_key or settings.GOOGLE_API_KEY
    model_name = model_name or settings.LLM_MODEL_NAME
    if not api_key:
        log.warning("GOOGLE_API_KEY not set; AI endpoints will report an error.")
        model, is_configured = None, False
        return False
    try:
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(model_name)
        is_configured = True
        log.info(f"Gemini API configured with model '{model_name}'.")
    except Exception as e:
        log.error(f"Gemini configuration failed: {e}", exc_info=True)
        model, is_configured = None, False
    return is_configured


configure_model()


def _error_result(message: str) -> Dict[str, Any]:
    return {"error": True, "message": message}


def _extract_json(text: str) -> Any:
    """Parse the model's reply, tolerating a ```json fenced block."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return json.loads(cleaned)


def _generate(prompt: str, purpose: str) -> Optional[str]:
    """Call the model; None on any API failure or empty/blocked response."""
    if not is_configured or model is None:
        log.error(f"LLM not configured. Cannot run {purpose}.")
        return None
    log.debug(f"{purpose} prompt (first 300 chars):\n{prompt[:300]}")
    try:
        response = model.generate_content(prompt)
    except Exception as e:
        log.error(f"Error calling Gemini API for {purpose}: {e}", exc_info=True)
        return None
    text = getattr(response, 'text', None)
    if not text:
        log.warning(f"Gemini returned an empty or blocked response for {purpose}.")
        return None
    return text


def build_budget_prompt(financial_data: str) -> str:
    prompt_lines = [
        "You are a financial advisor specializing in creating monthly budgets for small enterprises in the Philippines.",
        "Analyze the provided financial data and generate a suggested monthly budget.",
        "Your output must be a single valid JSON object with the keys 'income', 'expenses', 'savings' and 'summary'.",
        "Each of 'income', 'expenses' and 'savings' is an array of objects with a 'category' (string), "
        "a suggested 'amount' (number) and a concise 'recommendation' (string) about that item.",
        "'summary' is a short, high-level explanation of the overall budget and any assumptions you made.",
        "Ensure the suggested budget is realistic, beginner-friendly, and easy to navigate for users with "
        "limited financial literacy.",
        "If the financial data is not usable or understandable, return empty arrays for income, expenses and "
        "savings, and a summary explaining that the data could not be processed.",
        "Respond with JSON only.",
        "\nFinancial Data:",
        financial_data,
    ]
    return "\n".join(prompt_lines)


def suggest_monthly_budget(financial_data: str) -> Dict[str, Any]:
    """Suggest a monthly budget from free-text (usually CSV) financial data.

    Success: {"error": False, "suggested_budget": <JSON string>, "explanation": <summary>}.
    Any failure (not configured, API error, malformed JSON, an 'error' flag in
    the reply, no budget items at all) comes back as {"error": True, "message": ...};
    nothing is raised to the caller.
    """
    if not financial_data or not financial_data.strip():
        return _error_result(COULD_NOT_ANALYZE)
    if not is_configured or model is None:
        return _error_result(NOT_CONFIGURED)

    text = _generate(build_budget_prompt(financial_data), "budget suggestion")
    if text is None:
        return _error_result(COULD_NOT_ANALYZE)

    try:
        parsed = _extract_json(text)
    except (json.JSONDecodeError, ValueError) as e:
        log.warning(f"Budget suggestion reply was not valid JSON: {e}. Reply starts: {text[:200]!r}")
        return _error_result(COULD_NOT_ANALYZE)

    if not isinstance(parsed, dict) or parsed.get('error'):
        log.warning("Budget suggestion reply flagged an error or was not an object.")
        return _error_result(COULD_NOT_ANALYZE)

    budget = {section: parsed.get(section) or [] for section in BUDGET_SECTIONS}
    if not all(isinstance(items, list) for items in budget.values()) or not any(budget.values()):
        log.info("Model could not derive a budget from the uploaded data.")
        return _error_result(COULD_NOT_ANALYZE)

    return {
        "error": False,
        "suggested_budget": json.dumps(budget),
        "explanation": str(parsed.get('summary') or ''),
    }


def optimize_budget(market_conditions: str, spending_patterns: str, current_budget: str) -> Dict[str, Any]:
    """Suggest adjustments to an existing budget given market and spending context."""
    if not is_configured or model is None:
        return _error_result(NOT_CONFIGURED)

    prompt_lines = [
        "You are an AI budget optimization assistant for small enterprises.",
        "Based on the provided market conditions, spending patterns, and current budget, suggest budget "
        "adjustments to optimize financial performance, and explain the rationale behind each adjustment.",
        "Respond with a single JSON object with two keys: 'suggested_adjustments' (a JSON object describing the "
        "adjustments) and 'rationale' (a clear, concise string).",
        f"\nMarket Conditions: {market_conditions}",
        f"Spending Patterns: {spending_patterns}",
        f"Current Budget: {current_budget}",
    ]
    text = _generate("\n".join(prompt_lines), "budget optimization")
    if text is None:
        return _error_result(COULD_NOT_ANALYZE)

    try:
        parsed = _extract_json(text)
    except (json.JSONDecodeError, ValueError) as e:
        log.warning(f"Budget optimization reply was not valid JSON: {e}.")
        return _error_result(COULD_NOT_ANALYZE)

    if not isinstance(parsed, dict) or parsed.get('error') or 'suggested_adjustments' not in parsed:
        return _error_result(COULD_NOT_ANALYZE)

    adjustments = parsed['suggested_adjustments']
    return {
        "error": False,
        "suggested_adjustments": adjustments if isinstance(adjustments, str) else json.dumps(adjustments),
        "rationale": str(parsed.get('rationale') or ''),
    }


if __name__ == '__main__':
    log.info("llm_service.py executed directly for testing.")
    sample = "Date,Description,Amount,Category\n2024-07-01,Sales,50000,Income\n2024-07-05,Rent,15000,Expense"
    print(json.dumps(suggest_monthly_budget(sample), indent=2))
