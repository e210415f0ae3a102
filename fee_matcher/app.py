from flask import Blueprint, Flask, current_app, jsonify, request

from fee_matcher import config
from fee_matcher.ledger import STATUS_FILTERS, Ledger


def create_app(ledger=None):
    app = Flask(__name__)
    config.configure_logging()
    app.extensions["ledger"] = ledger if ledger is not None else Ledger()
    app.register_blueprint(api)
    return app


def _ledger():
    return current_app.extensions["ledger"]


def _summary_json(summary):
    return {
        key: float(value) if key in ("total_expected", "total_received", "difference") else value
        for key, value in summary.items()
    }


api = Blueprint("api", __name__, url_prefix="/api")


@api.route('/status', methods=['GET'])
def get_status():
    # Summary of matching results
    return jsonify(_summary_json(_ledger().summary()))


@api.route('/registrations', methods=['GET'])
def get_registrations():
    status = request.args.get('status', 'all')
    if status not in STATUS_FILTERS:
        return jsonify({"error": f"Unknown status filter '{status}'"}), 400
    regs = _ledger().filter_registrations(request.args.get('q', ''), status)
    return jsonify([r.to_dict() for r in regs])


@api.route('/registrations/import', methods=['POST'])
def import_registrations():
    data = request.get_json(silent=True) or {}
    text = data.get('text')
    if not text:
        return jsonify({"error": "Missing text"}), 400

    ledger = _ledger()
    imported = ledger.import_registrations(text, strict=data.get('strict'))
    return jsonify({"imported": imported, "summary": _summary_json(ledger.summary())})


@api.route('/bank-entries/unmatched', methods=['GET'])
def get_unmatched_bank_entries():
    banks = _ledger().unmatched_bank_entries(request.args.get('q', ''))
    return jsonify([b.to_dict() for b in banks])


@api.route('/bank-entries/import', methods=['POST'])
def import_bank_entries():
    data = request.get_json(silent=True) or {}
    text = data.get('text')
    if not text:
        return jsonify({"error": "Missing text"}), 400

    ledger = _ledger()
    imported = ledger.import_bank_entries(text)
    return jsonify({"imported": imported, "summary": _summary_json(ledger.summary())})


@api.route('/reconcile', methods=['POST'])
def reconcile():
    # Explicit run, for changes that keep both collection sizes
    return jsonify({"changed": _ledger().reconcile()})


@api.route('/manual-payment', methods=['POST'])
def manual_payment():
    data = request.get_json(silent=True) or {}
    reg_id = data.get('registration_id')
    reason = (data.get('reason') or '').strip()

    ledger = _ledger()
    reg = ledger.get_registration(reg_id)
    if not reg:
        return jsonify({"error": "Registration not found"}), 404
    if not reason:
        return jsonify({"error": "A reason is required"}), 400
    if not reg.is_open:
        return jsonify({"error": "Registration is already matched"}), 400

    ledger.inject_payment(reg_id, reason)
    reg = ledger.get_registration(reg_id)
    return jsonify({
        "registration": reg.to_dict(),
        "bank_entry": ledger.get_bank_entry(reg.matched_id).to_dict(),
    })


@api.route('/manual-payment/undo', methods=['POST'])
def undo_manual_payment():
    data = request.get_json(silent=True) or {}
    reg_id = data.get('registration_id')

    ledger = _ledger()
    reg = ledger.get_registration(reg_id)
    if not reg:
        return jsonify({"error": "Registration not found"}), 404
    if not reg.is_manual or not reg.matched_id:
        return jsonify({"error": "Registration has no manual payment"}), 400

    ledger.undo_injection(reg_id)
    return jsonify({"registration": ledger.get_registration(reg_id).to_dict()})


@api.route('/bank-entries/<bank_id>/candidates', methods=['GET'])
def get_candidates(bank_id):
    ledger = _ledger()
    if not ledger.get_bank_entry(bank_id):
        return jsonify({"error": "Bank entry not found"}), 404

    candidates = ledger.bind_candidates(bank_id, request.args.get('q', ''), limit=config.SUGGESTION_LIMIT)
    return jsonify([dict(reg.to_dict(), score=score) for reg, score in candidates])


@api.route('/confirm-match', methods=['POST'])
def confirm_match():
    # Endpoint to manually bind a bank entry to a registration
    data = request.get_json(silent=True) or {}
    bank_id = data.get('bank_entry_id')
    reg_id = data.get('registration_id')

    ledger = _ledger()
    bank = ledger.get_bank_entry(bank_id)
    reg = ledger.get_registration(reg_id)
    if not bank:
        return jsonify({"error": "Bank entry not found"}), 404
    if not reg:
        return jsonify({"error": "Registration not found"}), 404
    if not bank.is_available or not reg.is_open:
        return jsonify({"error": "Bank entry or registration is already matched"}), 400

    ledger.bind_bank_entry(bank_id, reg_id)
    return jsonify({
        "registration": ledger.get_registration(reg_id).to_dict(),
        "bank_entry": ledger.get_bank_entry(bank_id).to_dict(),
    })


@api.route('/reset', methods=['POST'])
def reset():
    _ledger().clear()
    return jsonify({"status": "success"})


if __name__ == '__main__':
    create_app().run(port=config.APP_PORT, debug=config.APP_DEBUG)
