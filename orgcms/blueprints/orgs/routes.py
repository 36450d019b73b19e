from flask import jsonify

from orgcms.errors import validation_error
from orgcms.services import audit, memberships
from orgcms.services.policy import AccessContext, get_membership, require_auth
from orgcms.utils.http import json_body
from orgcms.utils.validators import org_name_error
from . import bp


@bp.get("")
def list_orgs():
    user = require_auth()
    return jsonify(memberships.list_orgs_for_user(user.id)), 200


@bp.post("")
def create_org():
    user = require_auth()
    data = json_body()
    name = data.get("name")
    err = org_name_error(name)
    if err:
        raise validation_error([{"field": "name", "message": err}])

    org = memberships.create_org(user, name.strip())
    access = AccessContext(user=user, membership=get_membership(user.id, org.id))
    audit.record(access, audit.ORG_CREATE, resource=f"org:{org.id}", after=org.to_dict())
    return jsonify({**org.to_dict(), "role": access.role.value}), 201
