"""
Companies blueprint. Every query is filtered by the caller's user id, so
a user only ever sees and edits their own companies; other users' rows
answer 404.
"""
from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, abort, g

from models import storage
from models.company import Company
from models.schemas.company import (
    CompanyCreateSchema,
    CompanyUpdateSchema,
    CompanyOutSchema,
)
from utils.decorators import jwt_required

bp = Blueprint("companies", __name__)

create_schema = CompanyCreateSchema()
update_schema = CompanyUpdateSchema()
out_schema = CompanyOutSchema()
out_list_schema = CompanyOutSchema(many=True)

MAX_LIMIT = 100


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def owned_companies(session):
    return session.query(Company).filter(Company.user_id == g.current_user.id)


def registration_taken(session, registration_number: str, exclude_id: str | None = None) -> bool:
    q = owned_companies(session).filter(Company.registration_number == registration_number)
    if exclude_id:
        q = q.filter(Company.id != exclude_id)
    return session.query(q.exists()).scalar()


def get_owned_or_404(session, company_id: str) -> Company:
    company = owned_companies(session).filter(Company.id == company_id).first()
    if not company:
        abort(404)
    return company


@bp.post("/companies")
@jwt_required()
def create_company():
    """
    Create a company owned by the caller
    ---
    tags: [Companies]
    security:
      - Bearer: []
    consumes: [application/json]
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string }
            registrationNumber: { type: string }
            email: { type: string }
            address: { type: string }
    responses:
      201: { description: Created }
      409: { description: Registration number already used by this user }
      422: { description: Validation error }
    """
    session = storage.get_session()
    data = create_schema.load(request.get_json(silent=True) or {})
    if registration_taken(session, data["registration_number"]):
        abort(409, description="Company with this registration number already exists.")
    company = Company(user_id=g.current_user.id, **data)
    storage.new(company)
    storage.save()
    return jsonify({"data": out_schema.dump(company)}), 201


@bp.get("/companies")
@jwt_required()
def list_companies():
    """
    List the caller's companies (pagination)
    ---
    tags: [Companies]
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
    responses:
      200: { description: OK }
    """
    session = storage.get_session()
    page, limit = parse_pagination()
    query = owned_companies(session)
    total = query.count()
    rows = query.order_by(Company.name.asc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify({"data": out_list_schema.dump(rows), "meta": {"page": page, "limit": limit, "total": total}})


@bp.get("/companies/<company_id>")
@jwt_required()
def get_company(company_id: str):
    """
    Get one of the caller's companies
    ---
    tags: [Companies]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: company_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    company = get_owned_or_404(storage.get_session(), company_id)
    return jsonify({"data": out_schema.dump(company)})


@bp.put("/companies/<company_id>")
@jwt_required()
def update_company(company_id: str):
    """
    Update one of the caller's companies (partial)
    ---
    tags: [Companies]
    security:
      - Bearer: []
    consumes: [application/json]
    parameters:
      - in: path
        name: company_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            registrationNumber: { type: string }
            email: { type: string }
            address: { type: string }
    responses:
      200: { description: OK }
      404: { description: Not found }
      409: { description: Registration number already used by this user }
      422: { description: Validation error }
    """
    session = storage.get_session()
    company = get_owned_or_404(session, company_id)
    data = update_schema.load(request.get_json(silent=True) or {}, partial=True)
    if "registration_number" in data and registration_taken(session, data["registration_number"], exclude_id=company.id):
        abort(409, description="Company with this registration number already exists.")
    for key, value in data.items():
        setattr(company, key, value)
    storage.new(company)
    storage.save()
    return jsonify({"data": out_schema.dump(company)}), 200
