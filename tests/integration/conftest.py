# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Provides a representative two-project solution laid out on disk, with one
manifest per compilation unit.
"""

from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from typedep_graph.models import normalize_path


def write_manifest(path: Path, data: Dict[str, Any]) -> str:
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return str(path)


@pytest.fixture
def sample_solution(tmp_path: Path) -> Dict[str, Any]:
    """Create a solution with a domain library and a web project.

    Domain (Domain/domain.unit.yml):
    - IEntity, EntityBase, Order : EntityBase, IEntity, Customer
    - Repo<T> where T : IEntity, with a Repo<Order> field
    - Order and Customer reference each other

    Web (Web/web.unit.yml):
    - OrdersController uses Repo<Order> and creates Invoice in a lambda
    - Views/Orders.cshtml compiled to obj/Views_Orders.g.cs (not on disk)
    - A second generated view whose markup file is unknown

    Returns:
        Dictionary with root, unit paths and canonical source paths.
    """
    root = tmp_path / "solution"
    sources = {
        "entity": "Domain/IEntity.cs",
        "base": "Domain/EntityBase.cs",
        "order": "Domain/Order.cs",
        "customer": "Domain/Customer.cs",
        "repo": "Domain/Repo.cs",
        "controller": "Web/OrdersController.cs",
        "invoice": "Web/Invoice.cs",
        "view": "Web/Views/Orders.cshtml",
    }
    for relative in sources.values():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"// {relative}\n")

    domain_unit = write_manifest(
        root / "Domain" / "domain.unit.yml",
        {
            "name": "Domain",
            "types": [
                {"id": "Domain.IEntity", "file": "IEntity.cs"},
                {"id": "Domain.EntityBase", "file": "EntityBase.cs", "base": "System.Object"},
                {
                    "id": "Domain.Order",
                    "file": "Order.cs",
                    "base": "Domain.EntityBase",
                    "interfaces": ["Domain.IEntity"],
                    "members": [
                        {"kind": "field", "name": "Customer", "type": "Domain.Customer"},
                        {
                            "kind": "property",
                            "name": "Tags",
                            "type": {"definition": "System.List", "arguments": ["System.String"]},
                        },
                    ],
                },
                {
                    "id": "Domain.Customer",
                    "file": "Customer.cs",
                    "members": [
                        {
                            "kind": "field",
                            "name": "Orders",
                            "type": {"kind": "array", "element": "Domain.Order"},
                        }
                    ],
                },
                {
                    "id": "Domain.Repo",
                    "file": "Repo.cs",
                    "type_parameters": [{"id": "Domain.Repo.T", "constraints": ["Domain.IEntity"]}],
                    "members": [
                        {
                            "kind": "field",
                            "name": "Orders",
                            "type": {"definition": "Domain.Repo", "arguments": ["Domain.Order"]},
                        },
                        {"kind": "method", "name": "Get", "return_type": "Domain.Repo.T"},
                    ],
                },
            ],
        },
    )

    # The web unit sees domain types as source symbols of the same solution
    web_unit = write_manifest(
        root / "Web" / "web.unit.yml",
        {
            "name": "Web",
            "files": [
                "OrdersController.cs",
                "Invoice.cs",
                "obj/Views_Orders.g.cs",
                "obj/Views_Legacy.g.cs",
            ],
            "markup_files": ["Views/Orders.cshtml"],
            "original_file_markers": {
                "obj/Views_Orders.g.cs": ["Views/Orders.cshtml"],
                "obj/Views_Legacy.g.cs": ["Views/Legacy.cshtml"],
            },
            "types": [
                {"id": "Domain.Order", "file": "../Domain/Order.cs"},
                {"id": "Domain.Repo", "file": "../Domain/Repo.cs"},
                {"id": "Web.Invoice", "file": "Invoice.cs"},
                {
                    "id": "Web.OrdersController",
                    "file": "OrdersController.cs",
                    "members": [
                        {
                            "kind": "field",
                            "name": "repo",
                            "type": {"definition": "Domain.Repo", "arguments": ["Domain.Order"]},
                        },
                        {
                            "kind": "method",
                            "name": "Bill",
                            "body": [
                                {
                                    "kind": "lambda",
                                    "method": {
                                        "body": [{"kind": "object_creation", "type": "Web.Invoice"}]
                                    },
                                }
                            ],
                        },
                    ],
                },
                {
                    "id": "Web.Views.Orders",
                    "file": "obj/Views_Orders.g.cs",
                    "members": [{"kind": "field", "name": "Model", "type": "Domain.Order"}],
                },
                {
                    "id": "Web.Views.Legacy",
                    "file": "obj/Views_Legacy.g.cs",
                    "members": [{"kind": "field", "name": "Model", "type": "Domain.Order"}],
                },
            ],
            "declarations": {
                "OrdersController.cs": ["Web.OrdersController"],
                "Invoice.cs": ["Web.Invoice"],
                "obj/Views_Orders.g.cs": ["Web.Views.Orders"],
                "obj/Views_Legacy.g.cs": ["Web.Views.Legacy"],
            },
        },
    )

    return {
        "root": str(root),
        "units": [domain_unit, web_unit],
        "files": {key: normalize_path(str(root / value)) for key, value in sources.items()},
    }
