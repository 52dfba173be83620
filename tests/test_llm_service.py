import json

import pytest

import llm_service


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def generate_content(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeResponse(self.reply)


@pytest.fixture
def use_model(monkeypatch):
    def install(model):
        monkeypatch.setattr(llm_service, "model", model)
        monkeypatch.setattr(llm_service, "is_configured", model is not None)
        return model
    return install


BUDGET_REPLY = {
    "income": [{"category": "Sales", "amount": 50000, "recommendation": "Keep prices steady."}],
    "expenses": [{"category": "Rent", "amount": 15000, "recommendation": "Fixed cost."}],
    "savings": [{"category": "Emergency fund", "amount": 5000, "recommendation": "Build three months."}],
    "summary": "A lean budget for a sari-sari store.",
}


def test_suggest_monthly_budget_success(use_model):
    model = use_model(FakeModel(reply=json.dumps(BUDGET_REPLY)))
    result = llm_service.suggest_monthly_budget("Date,Description,Amount\n2024-07-01,Sales,50000\n")

    assert result["error"] is False
    assert result["explanation"] == "A lean budget for a sari-sari store."
    budget = json.loads(result["suggested_budget"])
    assert set(budget) == {"income", "expenses", "savings"}
    assert budget["expenses"][0]["category"] == "Rent"
    assert "2024-07-01,Sales,50000" in model.prompts[0]


def test_fenced_json_reply_is_accepted(use_model):
    use_model(FakeModel(reply="```json\n" + json.dumps(BUDGET_REPLY) + "\n```"))
    assert llm_service.suggest_monthly_budget("some data")["error"] is False


@pytest.mark.parametrize("reply", [
    "I am not able to help with that.",
    json.dumps({"income": [], "expenses": [], "savings": [], "summary": "Could not process the data."}),
    json.dumps({"error": True}),
    json.dumps(["not", "an", "object"]),
    "",
])
def test_unusable_replies_become_error_results(use_model, reply):
    use_model(FakeModel(reply=reply))
    result = llm_service.suggest_monthly_budget("some data")
    assert result == {"error": True, "message": llm_service.COULD_NOT_ANALYZE}


def test_api_failure_becomes_error_result(use_model):
    use_model(FakeModel(error=RuntimeError("quota exceeded")))
    assert llm_service.suggest_monthly_budget("some data")["error"] is True


def test_blank_input_is_not_sent_to_the_model(use_model):
    model = use_model(FakeModel(reply=json.dumps(BUDGET_REPLY)))
    assert llm_service.suggest_monthly_budget("   ")["error"] is True
    assert model.prompts == []


def test_not_configured(use_model):
    use_model(None)
    assert llm_service.suggest_monthly_budget("data") == {"error": True, "message": llm_service.NOT_CONFIGURED}
    assert llm_service.optimize_budget("inflation", "rising rent", "{}")["message"] == llm_service.NOT_CONFIGURED


def test_configure_model_without_key(monkeypatch):
    monkeypatch.setattr(llm_service.settings, "GOOGLE_API_KEY", None)
    monkeypatch.setattr(llm_service, "model", object())
    monkeypatch.setattr(llm_service, "is_configured", True)
    assert llm_service.configure_model() is False
    assert llm_service.model is None
    assert llm_service.is_configured is False


def test_optimize_budget_success(use_model):
    reply = {"suggested_adjustments": {"Marketing": -2000, "Inventory": 2000},
             "rationale": "Shift spend to stock ahead of the holidays."}
    model = use_model(FakeModel(reply=json.dumps(reply)))
    result = llm_service.optimize_budget("holiday demand", "marketing heavy", '{"Marketing": 10000}')

    assert result["error"] is False
    assert json.loads(result["suggested_adjustments"]) == {"Marketing": -2000, "Inventory": 2000}
    assert result["rationale"].startswith("Shift spend")
    assert "Current Budget: {\"Marketing\": 10000}" in model.prompts[0]


def test_optimize_budget_missing_adjustments(use_model):
    use_model(FakeModel(reply=json.dumps({"rationale": "none"})))
    assert llm_service.optimize_budget("a", "b", "c")["error"] is True
