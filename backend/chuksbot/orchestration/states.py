"""
Conversation State Tags

Closed set of state tags describing where a participant is in the
conversation flow graph, plus the static predecessor map used by the
"back" command.
"""
from enum import Enum as PyEnum
from typing import Optional


class State(str, PyEnum):
    """Every position a conversation can be in."""
    # Navigation
    MAIN_MENU = "main_menu"
    QUOTE_CATEGORY = "quote_category"
    PROCESSING = "processing"

    # Health insurance: plans
    HEALTH_PLANS_LIST = "health_plans_list"
    HEALTH_PLAN_DETAILS = "health_plan_details"

    # Health insurance: registration
    HEALTH_REG_SURNAME = "health_reg_surname"
    HEALTH_REG_MIDDLENAME = "health_reg_middlename"
    HEALTH_REG_FIRSTNAME = "health_reg_firstname"
    HEALTH_REG_DOB = "health_reg_dob"
    HEALTH_REG_GENDER = "health_reg_gender"
    HEALTH_REG_EMAIL = "health_reg_email"
    HEALTH_REG_PHONE = "health_reg_phone"
    HEALTH_REG_MARITAL = "health_reg_marital"
    HEALTH_REG_STATE = "health_reg_state"
    HEALTH_REG_LGA = "health_reg_lga"
    HEALTH_REG_ADDRESS = "health_reg_address"
    HEALTH_REG_BLOODGROUP = "health_reg_bloodgroup"
    HEALTH_PROVIDER_SELECT = "health_provider_select"
    HEALTH_REG_HOSPITAL = "health_reg_hospital"
    HEALTH_DECLARATION_1 = "health_declaration_1"
    HEALTH_DECLARATION_2 = "health_declaration_2"
    HEALTH_DECLARATION_3 = "health_declaration_3"

    # Health insurance: review, payment, activation
    HEALTH_REVIEW = "health_review"
    HEALTH_REVIEW_EDIT = "health_review_edit"
    HEALTH_PERSONAL_EDIT = "health_personal_edit"
    HEALTH_PAYMENT = "health_payment"
    HEALTH_PAYMENT_VERIFY = "health_payment_verify"
    HEALTH_INITIATE_ENROLLMENT = "health_initiate_enrollment"
    HEALTH_POLICY_ACTIVATED = "health_policy_activated"

    # Auto
    AUTO_TYPE = "auto_type"
    AUTO_BRAND = "auto_brand"
    AUTO_MODEL = "auto_model"
    AUTO_YEAR = "auto_year"
    AUTO_VALUE = "auto_value"
    AUTO_PLANS = "auto_plans"

    # Device
    DEVICE_TYPE = "device_type"
    DEVICE_BRAND = "device_brand"
    DEVICE_MODEL = "device_model"
    DEVICE_CONDITION = "device_condition"
    DEVICE_VALUE = "device_value"
    DEVICE_PLANS = "device_plans"

    # Life
    LIFE_AGE = "life_age"
    LIFE_DEPENDENTS = "life_dependents"
    LIFE_SUM = "life_sum"
    LIFE_CONDITIONS = "life_conditions"
    LIFE_PLANS = "life_plans"

    # Property
    PROPERTY_TYPE = "property_type"
    PROPERTY_STATE = "property_state"
    PROPERTY_VALUE = "property_value"
    PROPERTY_COVERAGE = "property_coverage"
    PROPERTY_PLANS = "property_plans"

    # Salary
    SALARY_AMOUNT = "salary_amount"
    SALARY_EMPLOYMENT = "salary_employment"
    SALARY_COVERAGE = "salary_coverage"
    SALARY_PLANS = "salary_plans"

    # Credit
    CREDIT_AMOUNT = "credit_amount"
    CREDIT_DURATION = "credit_duration"
    CREDIT_TYPE = "credit_type"
    CREDIT_PLANS = "credit_plans"

    # Payment
    PAYMENT_METHOD = "payment_method"
    PAYMENT_CONFIRMATION = "payment_confirmation"

    # Policy management
    POLICY_LOOKUP = "policy_lookup"
    POLICY_OPTIONS = "policy_options"

    # Claims & support
    CLAIMS_MENU = "claims_menu"
    CLAIM_TYPE = "claim_type"
    CLAIM_DESCRIPTION = "claim_description"
    CLAIM_LOCATION = "claim_location"
    CLAIM_DOCUMENTS = "claim_documents"
    CLAIM_TRACKING = "claim_tracking"

    # Information
    LEARN_PRODUCTS = "learn_products"
    PRODUCT_DETAIL = "product_detail"
    FAQ_CATEGORY = "faq_category"
    AGENT_CONNECT = "agent_connect"


HOME_STATE = State.MAIN_MENU

HEALTH_REGISTRATION_ORDER = [
    State.HEALTH_REG_SURNAME,
    State.HEALTH_REG_MIDDLENAME,
    State.HEALTH_REG_FIRSTNAME,
    State.HEALTH_REG_DOB,
    State.HEALTH_REG_GENDER,
    State.HEALTH_REG_EMAIL,
    State.HEALTH_REG_PHONE,
    State.HEALTH_REG_MARITAL,
    State.HEALTH_REG_STATE,
    State.HEALTH_REG_LGA,
    State.HEALTH_REG_ADDRESS,
    State.HEALTH_REG_BLOODGROUP,
    State.HEALTH_PROVIDER_SELECT,
    State.HEALTH_REG_HOSPITAL,
    State.HEALTH_DECLARATION_1,
    State.HEALTH_DECLARATION_2,
    State.HEALTH_DECLARATION_3,
    State.HEALTH_REVIEW,
]

QUOTE_FLOW_ORDERS = {
    "auto": [State.AUTO_TYPE, State.AUTO_BRAND, State.AUTO_MODEL, State.AUTO_YEAR, State.AUTO_VALUE, State.AUTO_PLANS],
    "device": [State.DEVICE_TYPE, State.DEVICE_BRAND, State.DEVICE_MODEL, State.DEVICE_CONDITION, State.DEVICE_VALUE, State.DEVICE_PLANS],
    "life": [State.LIFE_AGE, State.LIFE_DEPENDENTS, State.LIFE_SUM, State.LIFE_CONDITIONS, State.LIFE_PLANS],
    "property": [State.PROPERTY_TYPE, State.PROPERTY_STATE, State.PROPERTY_VALUE, State.PROPERTY_COVERAGE, State.PROPERTY_PLANS],
    "salary": [State.SALARY_AMOUNT, State.SALARY_EMPLOYMENT, State.SALARY_COVERAGE, State.SALARY_PLANS],
    "credit": [State.CREDIT_AMOUNT, State.CREDIT_DURATION, State.CREDIT_TYPE, State.CREDIT_PLANS],
}

CLAIM_ORDER = [
    State.CLAIM_TYPE,
    State.CLAIM_DESCRIPTION,
    State.CLAIM_LOCATION,
    State.CLAIM_DOCUMENTS,
]


def _chain(order: list) -> dict:
    return {later: earlier for earlier, later in zip(order, order[1:])}


# Static "back" map: state -> the step that precedes it
STATE_PREDECESSORS: dict = {
    State.HEALTH_PLAN_DETAILS: State.HEALTH_PLANS_LIST,
    State.HEALTH_REVIEW_EDIT: State.HEALTH_REVIEW,
    State.HEALTH_PERSONAL_EDIT: State.HEALTH_REVIEW_EDIT,
    State.POLICY_OPTIONS: State.POLICY_LOOKUP,
    State.PRODUCT_DETAIL: State.LEARN_PRODUCTS,
    State.CLAIM_TYPE: State.CLAIMS_MENU,
    State.CLAIM_TRACKING: State.CLAIMS_MENU,
    **_chain(HEALTH_REGISTRATION_ORDER),
    **_chain(CLAIM_ORDER),
}
for _order in QUOTE_FLOW_ORDERS.values():
    STATE_PREDECESSORS.update(_chain(_order))
    STATE_PREDECESSORS[_order[0]] = State.QUOTE_CATEGORY


def parse_state(value: object) -> Optional[State]:
    """Map a stored tag back to a State, or None when it is not a member."""
    try:
        return State(value)
    except ValueError:
        return None


def predecessor_of(state: State) -> Optional[State]:
    return STATE_PREDECESSORS.get(state)
