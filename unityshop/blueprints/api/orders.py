from flask import request, jsonify, send_file
from flask_login import current_user

from unityshop.extensions import db
from unityshop.models import Order
from unityshop.services.order_service import OrderService
from unityshop.services.excel import export_orders_excel
from unityshop.utils import parse_int
from . import api_bp
from .utils import admin_required, json_body, result_response

@api_bp.route('/api/orders', methods=['GET'])
@admin_required
def list_orders():
    orders = OrderService.list_orders(
        status=request.args.get('status'),
        search=request.args.get('search'),
        referral_code=request.args.get('referral'),
        member_id=parse_int(request.args.get('member_id'))
    )
    return jsonify({'status': 'success', 'orders': [o.to_dict() for o in orders]})

@api_bp.route('/api/orders/<int:order_pk>', methods=['GET'])
@admin_required
def get_order(order_pk):
    order = db.session.get(Order, order_pk)
    if not order:
        return jsonify({'status': 'error', 'message': 'Order not found'}), 404
    return jsonify({'status': 'success', 'order': order.to_dict()})

@api_bp.route('/api/orders/<int:order_pk>/status', methods=['POST'])
@admin_required
def update_order_status(order_pk):
    new_status = json_body().get('status')
    if not new_status:
        return jsonify({'status': 'error', 'message': 'Status is required'}), 400
    return result_response(OrderService.update_status(order_pk, new_status, current_user.id))

@api_bp.route('/api/orders/<int:order_pk>/return', methods=['POST'])
@admin_required
def return_order(order_pk):
    return result_response(OrderService.mark_returned(order_pk, current_user.id))

@api_bp.route('/api/orders/<int:order_pk>/cancel', methods=['POST'])
@admin_required
def cancel_order(order_pk):
    return result_response(OrderService.cancel_order(order_pk, current_user.id))

@api_bp.route('/api/orders/<int:order_pk>', methods=['DELETE'])
@admin_required
def delete_order(order_pk):
    return result_response(OrderService.delete_order(order_pk, current_user.id))

@api_bp.route('/api/orders/<int:order_pk>/cancel_or_delete', methods=['POST'])
@admin_required
def cancel_or_delete_order(order_pk):
    mode = json_body().get('mode')
    return result_response(OrderService.cancel_or_delete_order(order_pk, mode, current_user.id))

@api_bp.route('/api/orders/export', methods=['GET'])
@admin_required
def export_orders():
    output, filename, error = export_orders_excel(request.args.get('status'))
    if error:
        return jsonify({'status': 'error', 'message': f'Export failed: {error}'}), 500
    return send_file(output, as_attachment=True, download_name=filename,
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
