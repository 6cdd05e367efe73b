"""
End-to-end tests: the Flask API with SQLAlchemy managers on an in-memory sqlite database
"""
import json

import pytest
from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from jsonadm import JsonAdmApi, RelationshipRecord, SQLAManager, SQLATypeManager
from jsonadm.criteria import compare
from jsonadm.db import ListItemMixin, TypeItemMixin

db = SQLAlchemy()

JSONAPI = "application/vnd.api+json"


class Order(db.Model):
    __tablename__ = "orders"
    id = db.Column(db.Integer, primary_key=True)
    siteid = db.Column(db.Integer, default=1)
    status = db.Column(db.Integer, default=0)
    comment = db.Column(db.String(255), default="")
    typeid = db.Column(db.Integer, nullable=True)


class OrderType(TypeItemMixin, db.Model):
    __tablename__ = "order_type"


class OrderList(ListItemMixin, db.Model):
    __tablename__ = "order_list"


class OrderListType(TypeItemMixin, db.Model):
    __tablename__ = "order_list_type"


class OrderProduct(db.Model):
    __tablename__ = "order_product"
    id = db.Column(db.Integer, primary_key=True)
    prodcode = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, default=1)


class OrderAddress(db.Model):
    __tablename__ = "order_address"
    id = db.Column(db.Integer, primary_key=True)
    city = db.Column(db.String(64), default="")


class Catalog(db.Model):
    __tablename__ = "catalog"
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    parentid = db.Column(db.Integer, nullable=True)


def _populate() -> None:
    db.session.add(OrderType(code="web", domain="order", label="Web shop"))
    db.session.add(OrderListType(code="default", domain="order/product", label="Default"))
    db.session.add(OrderListType(code="default", domain="order/address", label="Default"))

    db.session.add(Order(id=1, siteid=1, status=1, comment="first"))
    db.session.add(Order(id=2, siteid=1, status=0, comment="gift wrapping"))
    db.session.add(Order(id=3, siteid=2, status=1, comment="other site"))

    for position in range(6):
        db.session.add(OrderProduct(id=position + 1, prodcode=f"P{position}", quantity=position + 1))
        db.session.add(OrderList(parentid="1", domain="order/product", refid=str(position + 1), position=position))
    db.session.add(OrderProduct(id=7, prodcode="P6"))
    db.session.add(OrderList(parentid="2", domain="order/product", refid="3", position=0))

    db.session.add(OrderAddress(id=1, city="Berlin"))
    db.session.add(OrderList(parentid="1", domain="order/address", refid="1", position=0))

    db.session.add(Catalog(id=1, code="root"))
    db.session.add(Catalog(id=2, code="shoes", parentid=1))
    db.session.commit()


@pytest.fixture
def app():
    app = Flask("jsonadm_test")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    db.init_app(app)

    api = JsonAdmApi(app, prefix="/jsonadm", DOMAINS=["order", "order/product"])
    lists = SQLAManager.factory(
        OrderList,
        "order/lists",
        entity_class=RelationshipRecord,
        sub_managers={"type": SQLATypeManager.factory(OrderListType, "order/lists/type")},
    )
    api.expose(
        "order",
        SQLAManager.factory(
            Order,
            "order",
            base_condition=compare("==", "order.siteid", 1),
            sub_managers={"lists": lists, "type": SQLATypeManager.factory(OrderType, "order/type")},
        ),
    )
    api.expose("order/product", SQLAManager.factory(OrderProduct, "order/product"))
    api.expose("order/address", SQLAManager.factory(OrderAddress, "order/address"))
    api.expose("catalog", SQLAManager.factory(Catalog, "catalog", parent_column="parentid"))

    with app.app_context():
        db.create_all()
        _populate()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _send(client, method: str, url: str, document=None, **kwargs):
    data = json.dumps(document) if document is not None else None
    return client.open(url, method=method, data=data, content_type=JSONAPI, **kwargs)


def test_get_item(client) -> None:
    response = client.get("/jsonadm/order/1")
    document = response.get_json()

    assert response.status_code == 200
    assert response.headers["Content-Type"] == 'application/vnd.api+json; supported-ext="bulk"'
    assert document["meta"]["total"] == 1
    assert document["data"]["id"] == "1"
    assert document["data"]["attributes"]["order.comment"] == "first"
    assert document["data"]["links"]["self"] == "http://localhost/jsonadm/order/1"
    assert "errors" not in document


def test_get_item_with_products(client) -> None:
    response = client.get("/jsonadm/order/1", query_string={"include": "order/product,order/address"})
    document = response.get_json()

    relationships = document["data"]["relationships"]
    assert [rel["id"] for rel in relationships["order/product"]["data"]] == ["1", "2", "3", "4", "5", "6"]
    assert [rel["id"] for rel in relationships["order/address"]["data"]] == ["1"]
    products = [item for item in document["included"] if item["type"] == "order/product"]
    assert sorted(item["id"] for item in products) == ["1", "2", "3", "4", "5", "6"]
    assert len(document["included"]) == 7


def test_get_item_with_invalid_reference(client) -> None:
    db.session.add(OrderList(parentid="1", domain="order/product", refid="abc", position=6))
    db.session.commit()

    response = client.get("/jsonadm/order/1", query_string={"include": "order/product"})
    document = response.get_json()

    assert response.status_code == 200
    assert sorted(item["id"] for item in document["included"]) == ["1", "2", "3", "4", "5", "6"]


def test_get_list_included_once(client) -> None:
    response = client.get("/jsonadm/order", query_string={"include": "order/product"})
    document = response.get_json()

    # product 3 belongs to both orders
    keys = [(item["type"], item["id"]) for item in document["included"]]
    assert len(keys) == len(set(keys)) == 6


def test_get_sparse_fieldset(client) -> None:
    response = client.get("/jsonadm/order/1", query_string={"fields[order]": "order.status"})
    assert response.get_json()["data"]["attributes"] == {"order.status": 1}


def test_get_list_with_base_condition(client) -> None:
    response = client.get("/jsonadm/order", query_string={"sort": "-order.id"})
    document = response.get_json()

    # order 3 belongs to another site
    assert document["meta"]["total"] == 2
    assert [item["id"] for item in document["data"]] == ["2", "1"]


def test_item_of_other_site_is_hidden(client) -> None:
    assert client.get("/jsonadm/order/3").status_code == 404
    assert _send(client, "PATCH", "/jsonadm/order/3", {"data": {"attributes": {"order.comment": "changed"}}}).status_code == 404
    assert client.delete("/jsonadm/order/3").status_code == 404

    order = db.session.get(Order, 3)
    assert order is not None
    assert order.comment == "other site"


def test_delete_by_body_keeps_other_site(client) -> None:
    response = _send(client, "DELETE", "/jsonadm/order", {"data": [{"id": "2"}, {"id": "3"}]})

    assert response.status_code == 200
    assert sorted(order.id for order in Order.query.all()) == [1, 3]


def test_get_list_filter_and_page(client) -> None:
    query = {"filter": json.dumps({"~=": {"order.comment": "gift"}}), "page[limit]": "1"}
    document = client.get("/jsonadm/order", query_string=query).get_json()

    assert document["meta"]["total"] == 1
    assert [item["id"] for item in document["data"]] == ["2"]

    query = {"filter[||][0][==][order.status]": "0", "filter[||][1][==][order.siteid]": "2", "page[offset]": "0"}
    document = client.get("/jsonadm/order", query_string=query).get_json()
    assert [item["id"] for item in document["data"]] == ["2"]


def test_get_list_page_limit_is_clamped(client) -> None:
    document = client.get("/jsonadm/order/product", query_string={"page[limit]": "0"}).get_json()

    assert document["meta"]["total"] == 7
    assert len(document["data"]) == 1


def test_get_unknown_field(client) -> None:
    response = client.get("/jsonadm/order", query_string={"sort": "order.unknown"})

    assert response.status_code == 404
    assert response.get_json()["errors"][0]["title"] == 'Invalid name "order.unknown"'


def test_get_not_found(client) -> None:
    assert client.get("/jsonadm/order/99").status_code == 404
    assert client.get("/jsonadm/order/abc").status_code == 404
    assert client.get("/jsonadm/unknown").status_code == 404


def test_get_children(client) -> None:
    document = client.get("/jsonadm/catalog/1", query_string={"include": "catalog"}).get_json()

    assert document["data"]["relationships"]["catalog"]["data"] == [{"id": "2", "type": "catalog"}]
    assert [item["attributes"]["catalog.code"] for item in document["included"]] == ["shoes"]


def test_post(client) -> None:
    document = {
        "data": {
            "type": "order",
            "attributes": {"order.status": 2, "order.comment": "new", "order.type": "web"},
            "relationships": {"order/product": {"data": [{"id": "7", "attributes": {"order.lists.type": "default"}}]}},
        }
    }

    response = _send(client, "POST", "/jsonadm/order", document)
    result = response.get_json()

    assert response.status_code == 201
    assert result["meta"]["total"] == 1
    assert result["data"]["attributes"]["order.comment"] == "new"
    assert result["data"]["attributes"]["order.typeid"] == 1

    order_id = int(result["data"]["id"])
    record = OrderList.query.filter_by(parentid=str(order_id), domain="order/product").one()
    assert record.refid == "7"
    assert record.typeid == 1

    fetched = client.get(f"/jsonadm/order/{order_id}").get_json()
    assert fetched["data"]["attributes"]["order.status"] == 2


def test_post_client_id(client) -> None:
    response = _send(client, "POST", "/jsonadm/order", {"data": {"id": "10", "attributes": {"order.status": 2}}})
    document = response.get_json()

    assert response.status_code == 403
    assert len(document["errors"]) == 1
    assert "data" not in document
    assert Order.query.count() == 3


def test_post_invalid_body(client) -> None:
    response = client.post("/jsonadm/order", data="{invalid", content_type=JSONAPI)

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["title"] == "Invalid JSON in body"


def test_post_unknown_type_code(client) -> None:
    response = _send(client, "POST", "/jsonadm/order", {"data": {"attributes": {"order.type": "phone"}}})

    assert response.status_code == 404
    assert Order.query.count() == 3


def test_patch(client) -> None:
    response = _send(client, "PATCH", "/jsonadm/order/2", {"data": {"attributes": {"order.comment": "changed"}}})

    assert response.status_code == 200
    assert response.get_json()["data"]["attributes"]["order.comment"] == "changed"
    assert db.session.get(Order, 2).comment == "changed"


def test_patch_bulk(client) -> None:
    document = {"data": [{"id": "1", "attributes": {"order.status": 5}}, {"id": "2", "attributes": {"order.status": 6}}]}

    response = _send(client, "PATCH", "/jsonadm/order", document)
    result = response.get_json()

    assert response.status_code == 200
    assert result["meta"]["total"] == 2
    assert 'ext="bulk"' in response.headers["Content-Type"]
    assert [db.session.get(Order, id).status for id in (1, 2)] == [5, 6]


def test_patch_missing_id(client) -> None:
    response = _send(client, "PATCH", "/jsonadm/order", {"data": {"attributes": {"order.status": 5}}})

    assert response.status_code == 400
    assert response.get_json()["errors"][0]["title"] == "No ID given"


def test_delete(client) -> None:
    response = client.delete("/jsonadm/order/product/6")

    assert response.status_code == 200
    assert response.get_json()["meta"]["total"] == 1
    assert db.session.get(OrderProduct, 6) is None


def test_delete_by_body(client) -> None:
    response = _send(client, "DELETE", "/jsonadm/order/product", {"data": [{"id": "5"}, {"id": "7"}]})

    assert response.status_code == 200
    assert response.get_json()["meta"]["total"] == 2
    assert sorted(product.id for product in OrderProduct.query.all()) == [1, 2, 3, 4, 6]


def test_delete_by_body_with_invalid_id(client) -> None:
    response = _send(client, "DELETE", "/jsonadm/order/product", {"data": [{"id": "abc"}, {"id": "5"}]})

    assert response.status_code == 200
    assert db.session.get(OrderProduct, 5) is None
    assert OrderProduct.query.count() == 6


def test_put(client) -> None:
    response = _send(client, "PUT", "/jsonadm/order/1", {"data": {"id": "1", "attributes": {"order.status": 5}}})
    document = response.get_json()

    assert response.status_code == 501
    assert document["errors"] == [{"title": "Not implemented, use PATCH instead"}]
    assert "data" not in document


def test_options(client) -> None:
    response = client.options("/jsonadm/")
    document = response.get_json()

    assert response.status_code == 200
    assert response.headers["Allow"] == "DELETE,GET,POST,OPTIONS"
    assert list(document["meta"]["resources"]) == ["order", "order/lists", "order/lists/type", "order/type", "order/product"]
    assert document["meta"]["resources"]["order"] == "http://localhost/jsonadm/order"
    assert document["meta"]["attributes"]["order.status"]["type"] == "integer"
    assert document["meta"]["attributes"]["order.product.prodcode"]["required"] is True


def test_options_for_resource(client) -> None:
    document = client.options("/jsonadm/order/address").get_json()
    assert list(document["meta"]["resources"]) == ["order/address"]
