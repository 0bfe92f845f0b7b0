#!/usr/bin/env python3
"""
JSON service for Succession Vault accounts
"""

import logging

from flask import Flask, jsonify, request

from succession.assets import InMemoryAssets
from succession.config import ServiceSettings
from succession.errors import (
    InvalidState,
    MissingField,
    LockNotElapsed,
    NotArmed,
    SuccessionError,
    Unauthorized,
)
from succession.manager import SuccessionManager

STATUS_BY_ERROR = {
    Unauthorized: 403,
    NotArmed: 409,
    InvalidState: 409,
    LockNotElapsed: 409,
}


def _status_for(error: SuccessionError) -> int:
    for error_type, status in STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return status
    return 400


def required(data, key):
    """Request field lookup that reports a missing key as MissingField"""
    if key not in data:
        raise MissingField(key)
    return data[key]


def create_app(settings: ServiceSettings = None, clock=None) -> Flask:
    settings = settings or ServiceSettings.from_env()

    app = Flask(__name__)
    app.logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # Global storage (one asset backend shared by every account)
    assets = InMemoryAssets()
    accounts = {}
    app.config['ACCOUNTS'] = accounts
    app.config['ASSETS'] = assets
    app.config['SETTINGS'] = settings

    def get_manager(contract_id):
        for key, manager in accounts.items():
            if key.lower() == contract_id.lower():
                return manager
        return None

    def body():
        return request.get_json(silent=True) or {}

    @app.errorhandler(SuccessionError)
    def handle_succession_error(error):
        app.logger.warning("Request rejected: %s", error.message)
        payload = {'success': False}
        payload.update(error.to_dict())
        return jsonify(payload), _status_for(error)

    @app.route('/api/accounts', methods=['POST'])
    def create_account():
        """Initialize a new custodial account"""
        data = body()
        manager = SuccessionManager.initialize(
            owner=required(data, 'owner'),
            heirs=required(data, 'heirs'),
            threshold=required(data, 'threshold'),
            delay_seconds=data.get('delay_seconds', settings.default_delay_seconds),
            assets=assets,
            contract_id=data.get('contract_id'),
            clock=clock,
        )
        accounts[manager.contract_id] = manager
        app.logger.info("Created account %s", manager.contract_id)
        return jsonify({'success': True, **manager.get_account_info()}), 201

    @app.route('/api/accounts/<contract_id>')
    def get_account(contract_id):
        manager = get_manager(contract_id)
        if manager is None:
            return jsonify({'success': False, 'error': 'NotFound', 'message': 'Account not found'}), 404

        info = manager.get_account_info()
        info['balances'] = manager.balances(request.args.getlist('token'))
        info['events'] = [e.to_dict() for e in manager.events]
        return jsonify(info)

    @app.route('/api/accounts/<contract_id>/message')
    def get_message(contract_id):
        """Message heirs must sign for a destination under the current nonce"""
        manager = get_manager(contract_id)
        if manager is None:
            return jsonify({'success': False, 'error': 'NotFound', 'message': 'Account not found'}), 404
        return jsonify(manager.authorization_message(required(request.args, 'destination')))

    def mutate(contract_id, operation):
        manager = get_manager(contract_id)
        if manager is None:
            return jsonify({'success': False, 'error': 'NotFound', 'message': 'Account not found'}), 404
        event = operation(manager, body())
        return jsonify({'success': True, **event.to_dict()})

    @app.route('/api/accounts/<contract_id>/arm', methods=['POST'])
    def arm(contract_id):
        return mutate(contract_id, lambda m, d: m.arm(
            required(d, 'signatures'), required(d, 'destination'),
            caller=d.get('caller'), nonce=d.get('nonce')))

    @app.route('/api/accounts/<contract_id>/cancel', methods=['POST'])
    def cancel(contract_id):
        return mutate(contract_id, lambda m, d: m.cancel(d.get('caller')))

    @app.route('/api/accounts/<contract_id>/release', methods=['POST'])
    def release(contract_id):
        return mutate(contract_id, lambda m, d: m.release(d.get('caller'), d.get('tokens', [])))

    @app.route('/api/accounts/<contract_id>/config', methods=['POST'])
    def update_config(contract_id):
        return mutate(contract_id, lambda m, d: m.update_config(
            d.get('caller'), required(d, 'heirs'), required(d, 'threshold'),
            required(d, 'delay_seconds')))

    @app.route('/api/accounts/<contract_id>/emergency-transfer', methods=['POST'])
    def emergency_transfer(contract_id):
        return mutate(contract_id, lambda m, d: m.emergency_transfer(
            d.get('caller'), d.get('to'), d.get('amount', 0), d.get('tokens', []),
            d.get('transfer_all_base', False)))

    @app.route('/api/accounts/<contract_id>/deposit', methods=['POST'])
    def deposit(contract_id):
        return mutate(contract_id, lambda m, d: m.deposit(required(d, 'amount')))

    return app


app = create_app()

if __name__ == "__main__":
    settings = app.config['SETTINGS']
    app.run(
        host=settings.host,
        port=settings.port,
        debug=False
    )
