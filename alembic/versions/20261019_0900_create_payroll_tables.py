"""Create payroll tables

Revision ID: 20261019_0900
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates the payroll engine tables:
- employees: Employee records with compensation profile
- attendance_entries: Daily attendance used for proration and overtime
- payroll_records: One record per (company, employee, month, year)
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_0900'
down_revision = None
branch_labels = None
depends_on = None


EMPLOYMENT_STATUS = sa.Enum(
    'ACTIVE', 'PROBATION', 'INACTIVE', 'TERMINATED', 'RESIGNED',
    name='employmentstatus',
)
ATTENDANCE_STATUS = sa.Enum(
    'PRESENT', 'ABSENT', 'HALF_DAY', 'ON_LEAVE',
    name='attendancestatus',
)
PAYROLL_STATUS = sa.Enum(
    'DRAFT', 'GENERATED', 'APPROVED', 'PAID', 'REJECTED', 'CANCELLED',
    name='payrollstatus',
)
PAYMENT_METHOD = sa.Enum(
    'BANK_TRANSFER', 'CASH', 'CHEQUE', 'UPI', 'WIRE_TRANSFER',
    name='paymentmethod',
)


def table_exists(table_name: str) -> bool:
    """Check if a table exists."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in inspector.get_table_names()


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ===========================================
    # EMPLOYEES TABLE
    # ===========================================
    if not table_exists('employees'):
        op.create_table('employees',
            sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
            sa.Column('company_id', sa.String(64), nullable=False),
            sa.Column('employee_code', sa.String(50), nullable=False, comment='Company-facing employee ID (EMP-0001)'),
            sa.Column('first_name', sa.String(100), nullable=False),
            sa.Column('last_name', sa.String(100), nullable=False),
            sa.Column('email', sa.String(255), nullable=True),
            sa.Column('department', sa.String(100), nullable=True),
            sa.Column('designation', sa.String(100), nullable=True),
            sa.Column('employment_type', sa.String(30), nullable=False),
            sa.Column('employment_status', EMPLOYMENT_STATUS, nullable=False),
            sa.Column('is_deleted', sa.Boolean, nullable=False),
            sa.Column('joining_date', sa.Date, nullable=True),

            # Compensation profile
            sa.Column('basic_salary', sa.Numeric(15, 2), nullable=True),
            sa.Column('hra', sa.Numeric(15, 2), nullable=False),
            sa.Column('allowances', sa.Numeric(15, 2), nullable=False, comment='Pooled allowances, split into conveyance/medical/other'),

            sa.Column('bank_name', sa.String(100), nullable=True),
            *timestamps(),
            sa.UniqueConstraint('company_id', 'employee_code', name='uq_employee_company_code'),
        )
        op.create_index('ix_employees_company_id', 'employees', ['company_id'])

    # ===========================================
    # ATTENDANCE ENTRIES TABLE
    # ===========================================
    if not table_exists('attendance_entries'):
        op.create_table('attendance_entries',
            sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
            sa.Column('company_id', sa.String(64), nullable=False),
            sa.Column('employee_id', sa.Uuid(as_uuid=True), nullable=False),
            sa.Column('date', sa.Date, nullable=False),
            sa.Column('status', ATTENDANCE_STATUS, nullable=False),
            sa.Column('work_hours', sa.Numeric(5, 2), nullable=False),
            sa.Column('overtime_hours', sa.Numeric(5, 2), nullable=False),
            sa.Column('is_late', sa.Boolean, nullable=False),
            *timestamps(),
        )
        op.create_index('ix_attendance_entries_company_id', 'attendance_entries', ['company_id'])
        op.create_index('ix_attendance_employee_date', 'attendance_entries', ['employee_id', 'date'])

    # ===========================================
    # PAYROLL RECORDS TABLE
    # ===========================================
    if not table_exists('payroll_records'):
        op.create_table('payroll_records',
            sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
            sa.Column('company_id', sa.String(64), nullable=False),
            sa.Column('employee_id', sa.Uuid(as_uuid=True), nullable=False),
            sa.Column('payroll_id', sa.String(100), nullable=False, comment='PAY-<employee code>-<month>-<year>'),

            # Pay period
            sa.Column('month', sa.Integer, nullable=False),
            sa.Column('year', sa.Integer, nullable=False),
            sa.Column('pay_period', sa.String(20), nullable=False),

            # Line items and totals
            sa.Column('earnings', sa.JSON, nullable=False),
            sa.Column('deductions', sa.JSON, nullable=False),
            sa.Column('adjustments', sa.JSON, nullable=False, comment='Caller-supplied discretionary lines'),
            sa.Column('gross_salary', sa.Numeric(15, 2), nullable=False),
            sa.Column('total_deductions', sa.Numeric(15, 2), nullable=False),
            sa.Column('net_salary', sa.Numeric(15, 2), nullable=False),

            # Attendance snapshot
            sa.Column('attendance_data', sa.JSON, nullable=False),
            sa.Column('working_days', sa.Numeric(5, 2), nullable=False),

            sa.Column('status', PAYROLL_STATUS, nullable=False),

            # Payment
            sa.Column('payment_date', sa.Date, nullable=True),
            sa.Column('payment_method', PAYMENT_METHOD, nullable=False),
            sa.Column('transaction_id', sa.String(100), nullable=True),
            sa.Column('utr', sa.String(100), nullable=True),
            sa.Column('bank_name', sa.String(100), nullable=True),

            # Audit trail
            sa.Column('generated_by', sa.String(64), nullable=True),
            sa.Column('generated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('approved_by', sa.String(64), nullable=True),
            sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('rejected_by', sa.String(64), nullable=True),
            sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('rejected_reason', sa.Text, nullable=True),

            # Payslip artifact
            sa.Column('payslip_generated', sa.Boolean, nullable=False),
            sa.Column('payslip_url', sa.String(500), nullable=True),
            sa.Column('payslip_email_sent', sa.Boolean, nullable=False),

            sa.Column('notes', sa.Text, nullable=True),
            sa.Column('admin_notes', sa.Text, nullable=True),
            *timestamps(),

            sa.UniqueConstraint(
                'company_id', 'employee_id', 'month', 'year',
                name='uq_payroll_company_employee_period',
            ),
            sa.UniqueConstraint('company_id', 'payroll_id', name='uq_payroll_company_payroll_id'),
            sa.CheckConstraint('month >= 1 AND month <= 12', name='ck_payroll_records_payroll_month_range'),
            sa.CheckConstraint('year >= 2020 AND year <= 2099', name='ck_payroll_records_payroll_year_range'),
        )
        op.create_index('ix_payroll_records_company_id', 'payroll_records', ['company_id'])
        op.create_index('ix_payroll_records_employee_id', 'payroll_records', ['employee_id'])


def downgrade() -> None:
    op.drop_table('payroll_records')
    op.drop_table('attendance_entries')
    op.drop_table('employees')
    PAYMENT_METHOD.drop(op.get_bind(), checkfirst=True)
    PAYROLL_STATUS.drop(op.get_bind(), checkfirst=True)
    ATTENDANCE_STATUS.drop(op.get_bind(), checkfirst=True)
    EMPLOYMENT_STATUS.drop(op.get_bind(), checkfirst=True)
