import dataclasses
import logging
from io import BytesIO

from flask import Flask, jsonify, request, send_file

from . import config
from .errors import GatewayConfigError, NotFoundError, ValidationError
from .gateway import SANDBOX, extract_registration_type
from .models import Company
from .qr import qr_png
from .scenarios import CATALOG_VERSION, list_scenarios
from .service import InvoiceService
from .storage import InvoiceStore

logger = logging.getLogger(__name__)


def _result_status(result):
    if result.success:
        return 200
    if result.warning:
        return 422
    return 502


def create_app(db_path=None, settings=None, client_factory=None, sleep=None):
    app = Flask(__name__)

    store = InvoiceStore(db_path or config.DB_PATH)
    service_options = {'auto_post_delay': config.AUTO_POST_DELAY}
    if sleep is not None:
        service_options['sleep'] = sleep
    service = InvoiceService(store, client_factory=client_factory, **service_options)
    settings = settings or config.load_settings()

    app.config['FBR_STORE'] = store
    app.config['FBR_SERVICE'] = service
    app.config['FBR_SETTINGS'] = settings

    def body():
        return request.get_json(silent=True) or {}

    def current_company():
        company_id = request.args.get('company_id') or body().get('company_id')
        if not company_id:
            raise ValidationError('Company ID is required', field='company_id')
        return store.get_company(company_id)

    # ----------------- ERRORS -----------------
    @app.errorhandler(ValidationError)
    def validation_error(e):
        return jsonify(e.to_dict()), 400

    @app.errorhandler(NotFoundError)
    def not_found(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(GatewayConfigError)
    def gateway_config_error(e):
        return jsonify({'error': str(e)}), 400

    # ----------------- SETTINGS -----------------
    @app.route('/companies/<company_id>', methods=['PUT'])
    def save_company(company_id):
        data = body()
        company = Company(
            id=company_id,
            name=data.get('name', ''),
            business_name=data.get('business_name', ''),
            address=data.get('address', ''),
            province=data.get('province', ''),
            ntn=data.get('ntn', ''),
            fbr_token=data.get('fbr_token', ''),
        )
        store.save_company(company)
        return jsonify(_company_dict(company))

    @app.route('/companies/<company_id>')
    def get_company(company_id):
        return jsonify(_company_dict(store.get_company(company_id)))

    @app.route('/scenarios')
    def scenarios():
        sort_by_id = request.args.get('sort') == 'id'
        return jsonify({
            'version': CATALOG_VERSION,
            'scenarios': [
                {
                    'id': scenario.id,
                    'name': scenario.name,
                    'sale_type': scenario.sale_type,
                    'description': scenario.description,
                }
                for scenario in list_scenarios(sort_by_id=sort_by_id)
            ],
        })

    # ----------------- LOOKUPS -----------------
    @app.route('/buyers/check', methods=['POST'])
    def check_buyer():
        data = body()
        result = service.check_buyer(
            current_company(), settings, data.get('ntn'),
            kind=data.get('type') or 'reg_type', on_date=data.get('date'))
        response = result.to_dict()
        response['registration_type'] = extract_registration_type(result.body)
        return jsonify(response), _result_status(result)

    @app.route('/reference/<kind>')
    def reference_data(kind):
        return jsonify(service.reference_data(current_company(), settings, kind))

    # ----------------- INVOICES -----------------
    @app.route('/invoices', methods=['POST'])
    def create_invoice():
        invoice = service.create_invoice(current_company(), settings, body())
        return jsonify(invoice.to_dict()), 201

    @app.route('/invoices/<int:invoice_id>')
    def get_invoice(invoice_id):
        company = current_company()
        return jsonify(store.get_invoice(invoice_id, company.id).to_dict())

    @app.route('/invoices/<int:invoice_id>', methods=['PUT'])
    def update_invoice(invoice_id):
        invoice = service.update_invoice(current_company(), invoice_id, body())
        return jsonify(invoice.to_dict())

    @app.route('/invoices/<int:invoice_id>/payload')
    def invoice_payload(invoice_id):
        _, payload = service.build_payload(current_company(), settings, invoice_id)
        return jsonify(payload)

    # ----------------- SUBMIT ROUTES -----------------
    @app.route('/invoices/<int:invoice_id>/validate', methods=['POST'])
    def validate_invoice(invoice_id):
        result = service.validate_invoice(current_company(), settings, invoice_id)
        return jsonify(result.to_dict()), _result_status(result)

    @app.route('/invoices/<int:invoice_id>/post', methods=['POST'])
    def post_invoice(invoice_id):
        result = service.post_invoice(
            current_company(),
            settings,
            invoice_id,
            override_warnings=bool(body().get('override_warnings')),
        )
        return jsonify(result.to_dict()), _result_status(result)

    @app.route('/invoices/<int:invoice_id>/submit', methods=['POST'])
    def submit_invoice(invoice_id):
        validation, posted = service.submit_invoice(
            current_company(), settings, invoice_id, auto_post=bool(body().get('auto_post')))
        response = {
            'validation': validation.to_dict(),
            'post': posted.to_dict() if posted else None,
        }
        return jsonify(response), _result_status(posted or validation)

    # ----------------- STATUS ROUTES -----------------
    @app.route('/invoices/<int:invoice_id>/status', methods=['PATCH'])
    def change_status(invoice_id):
        data = body()
        invoice, change = service.change_status(
            current_company(), invoice_id, data.get('status'), data.get('note', ''))
        return jsonify({'invoice': invoice.to_dict(), 'change': change.to_dict()})

    @app.route('/invoices/<int:invoice_id>/payment-status', methods=['PATCH'])
    def change_payment_status(invoice_id):
        data = body()
        invoice, change = service.change_payment_status(
            current_company(), invoice_id, data.get('payment_status'), data.get('note', ''))
        return jsonify({'invoice': invoice.to_dict(), 'change': change.to_dict()})

    @app.route('/invoices/<int:invoice_id>/payments', methods=['POST'])
    def record_payment(invoice_id):
        data = body()
        invoice, change = service.record_payment(
            current_company(), invoice_id, data.get('amount'), data.get('note', ''))
        return jsonify({'invoice': invoice.to_dict(), 'change': change.to_dict()}), 201

    @app.route('/invoices/<int:invoice_id>/history')
    def history(invoice_id):
        changes = service.history(current_company(), invoice_id)
        return jsonify([change.to_dict() for change in changes])

    @app.route('/invoices/<int:invoice_id>/qr')
    def invoice_qr(invoice_id):
        invoice = store.get_invoice(invoice_id, current_company().id)
        if not invoice.fbr_invoice_number:
            return jsonify({'error': 'Invoice has not been posted to FBR'}), 404
        return send_file(
            BytesIO(qr_png(invoice.fbr_invoice_number)),
            mimetype='image/png',
            download_name=f'{invoice.fbr_invoice_number}.png',
        )

    # ----------------- SANDBOX -----------------
    @app.route('/sandbox/regression', methods=['POST'])
    def regression():
        data = body()
        company = current_company()
        sandbox = dataclasses.replace(
            settings,
            fbr_token=data.get('token') or settings.token_for(company),
            environment=SANDBOX,
        )
        report = service.run_regression(company, sandbox, delay=config.REGRESSION_DELAY)
        return jsonify(report.to_dict(sort_by_id=data.get('sort') == 'id'))

    return app


def _company_dict(company):
    return {
        'id': company.id,
        'name': company.name,
        'business_name': company.business_name,
        'address': company.address,
        'province': company.province,
        'ntn': company.ntn,
        'has_fbr_token': bool(company.fbr_token),
    }


def main():
    config.configure_logging()
    create_app().run(debug=False, host='0.0.0.0', port=5000)


if __name__ == '__main__':
    main()
