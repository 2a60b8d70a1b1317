import logging
from datetime import date

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, ProtectedError
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from backend.core.access import permission_required
from backend.core.pdf import render_statement_pdf
from backend.core.utils import create_audit_log, paginate
from backend.locations.models import team_for_location
from .ledger import customer_balance, period_ledger
from .models import Customer, BankAccount
from .serializers import CustomerSerializer, BankAccountSerializer

logger = logging.getLogger(__name__)


def _customer_queryset():
    return Customer.objects.select_related('relationship_manager', 'location', 'team')


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'GET': 'customers:view', 'POST': 'customers:create'})])
def customer_list_create(request):
    """List customers with search and pagination, or create a customer"""
    if request.method == 'GET':
        queryset = _customer_queryset()

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(email__icontains=search) |
                Q(phone__icontains=search) |
                Q(company_name__icontains=search) |
                Q(contact_person__icontains=search)
            )
        location_id = request.query_params.get('location')
        if location_id:
            queryset = queryset.filter(location_id=location_id)
        team_id = request.query_params.get('team')
        if team_id:
            queryset = queryset.filter(team_id=team_id)
        manager_id = request.query_params.get('relationship_manager')
        if manager_id:
            queryset = queryset.filter(relationship_manager_id=manager_id)

        queryset = queryset.order_by('name')
        return Response(paginate(request, queryset, CustomerSerializer))
    else:
        serializer = CustomerSerializer(data=request.data)
        if serializer.is_valid():
            location = serializer.validated_data['location']
            customer = serializer.save(team=team_for_location(location))
            create_audit_log(
                request=request, action='create', model_name='Customer', object_id=customer.id,
                object_name=customer.name, changes={'current': serializer.data}
            )
            logger.info(f"Customer {customer.name} created by {request.user}")
            return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({
    'GET': 'customers:view', 'PUT': 'customers:edit', 'PATCH': 'customers:edit', 'DELETE': 'customers:delete',
})])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(_customer_queryset(), pk=pk)

    if request.method == 'GET':
        data = CustomerSerializer(customer).data
        data['balance_summary'] = customer_balance(customer)
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        previous = CustomerSerializer(customer).data
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            extra = {}
            new_location = serializer.validated_data.get('location')
            if new_location is not None and new_location.pk != customer.location_id:
                extra['team'] = team_for_location(new_location)
            customer = serializer.save(**extra)
            create_audit_log(
                request=request, action='update', model_name='Customer', object_id=customer.id,
                object_name=customer.name, changes={'previous': previous, 'current': serializer.data}
            )
            return Response(CustomerSerializer(customer).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if customer.invoices.exists():
            return Response({'error': 'Cannot delete customer with existing invoices'}, status=status.HTTP_400_BAD_REQUEST)
        name = customer.name
        try:
            customer.delete()
        except ProtectedError:
            return Response({'error': 'Cannot delete customer with existing payments'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='Customer', object_id=pk, object_name=name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['customers:view', 'payments:view'])])
def customer_balance_view(request, pk):
    """Opening balance + invoiced - paid for one customer"""
    customer = get_object_or_404(Customer, pk=pk)
    return Response({
        'customer': {'id': customer.id, 'name': customer.name},
        **customer_balance(customer),
    })


def _parse_date(value):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_required(['customers:view', 'payments:view'])])
def customer_ledger(request, pk):
    """Customer statement for a period with running balance; ``format=pdf`` downloads it"""
    start_raw = request.query_params.get('start_date')
    end_raw = request.query_params.get('end_date')
    if not start_raw or not end_raw:
        return Response({'error': 'Start date and end date are required'}, status=status.HTTP_400_BAD_REQUEST)
    start_date = _parse_date(start_raw)
    end_date = _parse_date(end_raw)
    if start_date is None or end_date is None:
        return Response({'error': 'Dates must be in YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    if start_date > end_date:
        return Response({'error': 'Start date must be before end date'}, status=status.HTTP_400_BAD_REQUEST)

    customer = Customer.objects.filter(pk=pk).first()
    if customer is None:
        return Response({'error': 'Customer not found'}, status=status.HTTP_404_NOT_FOUND)

    ledger = period_ledger(customer, start_date, end_date)

    if request.query_params.get('format') == 'pdf':
        response = HttpResponse(render_statement_pdf(ledger), content_type='application/pdf')
        filename = f"statement_{customer.id}_{start_date}_{end_date}.pdf"
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response
    return Response(ledger)


# Bank account views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_required({'POST': 'settings:edit'})])
def bank_account_list_create(request):
    """List active bank accounts or create one"""
    if request.method == 'GET':
        accounts = BankAccount.objects.all()
        if request.query_params.get('include_inactive', '').lower() not in ('true', '1'):
            accounts = accounts.filter(is_active=True)
        serializer = BankAccountSerializer(accounts, many=True)
        return Response(serializer.data)
    else:
        serializer = BankAccountSerializer(data=request.data)
        if serializer.is_valid():
            account = serializer.save()
            create_audit_log(request=request, action='create', model_name='BankAccount', object_id=account.id,
                             object_name=str(account))
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, permission_required({'PATCH': 'settings:edit', 'DELETE': 'settings:edit'})])
def bank_account_detail(request, pk):
    """Retrieve, update or deactivate a bank account"""
    account = get_object_or_404(BankAccount, pk=pk)

    if request.method == 'GET':
        serializer = BankAccountSerializer(account)
        return Response(serializer.data)
    elif request.method == 'PATCH':
        serializer = BankAccountSerializer(account, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        account.is_active = False
        account.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request=request, action='delete', model_name='BankAccount', object_id=account.id,
                         object_name=str(account))
        data = BankAccountSerializer(account).data
        data['linked_invoices'] = account.invoices.count()
        data['linked_payments'] = account.payments.count()
        return Response({'message': 'Bank account deactivated successfully', 'bank_account': data})
