import logging
import os
from uuid import uuid4

import click
from flask import Flask, jsonify, redirect, render_template, request, session, url_for

from clearledger.engine import run_scenario
from clearledger.formatter import format_currency, format_months_to_years
from clearledger.main import build_scenario_from_options
from clearledger_web.scenario_store import create_store_from_env

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
scenario_store = create_store_from_env(
    os.environ.get("SCENARIO_DATABASE_URL"),
    os.environ.get("SCENARIO_MAX_PER_USER"),
)

CURRENCY_OPTIONS = {
    "USD": "US dollar",
    "CAD": "Canadian dollar",
    "EUR": "Euro",
    "GBP": "British pound",
    "PLN": "Polish złoty",
}

STRATEGY_LABELS = {
    "fixed": "Fixed payment",
    "minimum": "Minimum payment",
    "variable": "Variable payments",
    "target": "Target payoff",
}

app.jinja_env.filters["currency"] = format_currency
app.jinja_env.filters["duration"] = format_months_to_years


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _normalized_currency(form) -> str:
    code = str(form.get("currency", "USD")).upper()
    return code if code in CURRENCY_OPTIONS else "USD"


def _optional(form, key: str):
    value = form.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _optional_int(form, key: str):
    value = _optional(form, key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise click.BadParameter(f"{key} must be a whole number; got {value}")


def parse_form_list(value: str) -> list[str]:
    """Parse a comma or whitespace separated list of entries from a form field.

    Returns a list of trimmed strings, skipping any empty entries.
    """
    if not value:
        return []
    parts = [p.strip() for p in str(value).replace("\n", ",").split(",")]
    return [p for p in parts if p]


def _form_to_scenario(form):
    return build_scenario_from_options(
        str(form.get("balance", "")).strip(),
        str(form.get("apr", "")).strip(),
        str(form.get("strategy", "fixed")),
        payment=_optional(form, "payment"),
        payments=_optional(form, "payments"),
        min_type=_optional(form, "min_type"),
        min_value=_optional(form, "min_value"),
        min_floor=_optional(form, "min_floor"),
        min_payment=_optional(form, "min_payment"),
        target_months=_optional_int(form, "target_months"),
        purchase=tuple(parse_form_list(form.get("purchases", ""))),
        max_months=_optional_int(form, "max_months"),
        start_date=_optional(form, "start_date"),
        currency=_normalized_currency(form),
    )


def _handle_save_action(user_token: str, form, scenario, summary: dict) -> None:
    scenario_name = str(form.get("scenario_name", "")).strip() or STRATEGY_LABELS[scenario.strategy]
    fixed_payment = scenario.payment if scenario.strategy == "fixed" else None
    if scenario.strategy == "target" and summary.get("target"):
        fixed_payment = summary["target"]["monthly_payment"]
    scenario_store.add_scenario(
        user_token,
        uuid4().hex,
        scenario_name,
        payment_type=scenario.strategy,
        starting_balance=scenario.balance,
        total_interest=summary["total_interest"],
        months_to_payoff=summary["months"],
        fixed_payment=fixed_payment,
        variable_payments=scenario.variable_payments if scenario.strategy == "variable" else None,
    )


@app.route("/", methods=["GET", "POST"])
def index():
    summary = None
    schedule = None
    error = None
    currency_code = "USD"
    action = "run"

    user_token = _ensure_user_token()

    if request.method == "POST":
        action = request.form.get("action", "run")
        currency_code = _normalized_currency(request.form)
        try:
            scenario = _form_to_scenario(request.form)
            result, summary = run_scenario(scenario)
            schedule = result.breakdown
            if action == "save":
                _handle_save_action(user_token, request.form, scenario, summary)
        except (click.ClickException, ValueError) as exc:
            logger.info("Rejected simulation input: %s", exc)
            error = str(exc)

    saved_scenarios = scenario_store.list_scenarios(user_token)

    return render_template(
        "index.html",
        summary=summary,
        schedule=schedule,
        error=error,
        form=request.form,
        currency_code=currency_code,
        currency_options=CURRENCY_OPTIONS,
        strategy_labels=STRATEGY_LABELS,
        asset_version=app.config["ASSET_VERSION"],
        saved_scenarios=saved_scenarios,
        last_action=action,
    )


@app.post("/api/simulate")
def simulate():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    # Lists are accepted as-is from JSON clients
    if isinstance(payload.get("payments"), list):
        payload["payments"] = ",".join(str(p) for p in payload["payments"])
    if isinstance(payload.get("purchases"), list):
        payload["purchases"] = ",".join(str(p) for p in payload["purchases"])
    try:
        scenario = _form_to_scenario(payload)
        result, summary = run_scenario(scenario)
    except (click.ClickException, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"summary": summary, "result": result.to_dict()})


@app.post("/scenarios/remove")
def remove_scenario():
    scenario_id = request.form.get("scenario_id")
    user_token = session.get("user_token")
    scenario_store.remove_scenario(user_token, scenario_id)
    return redirect(url_for("index"))


@app.post("/scenarios/clear")
def clear_scenarios():
    user_token = session.get("user_token")
    scenario_store.clear_scenarios(user_token)
    return redirect(url_for("index"))


if __name__ == "__main__":
    print("Starting ClearLedger web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
