#!/usr/bin/env python
#
# This is a demo application to demonstrate the functionality of the jsonadm REST API
#
# It can be ran standalone like this:
# python demo.py [Listener-IP]
#
# This will run the example on http://Listener-Ip:5000/jsonadm
#
# - A database is created with products, orders and the relationships between them
# - The resources are available as JSON:API endpoints, e.g.
#   curl 'http://localhost:5000/jsonadm/order/1?include=order/product'
#   curl -X OPTIONS http://localhost:5000/jsonadm/
#
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from jsonadm import JsonAdmApi, RelationshipRecord, SQLAManager, SQLATypeManager
from jsonadm.db import ListItemMixin, TypeItemMixin

db = SQLAlchemy()


class Order(db.Model):
    __tablename__ = "orders"
    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.Integer, default=0)
    comment = db.Column(db.String(255), default="")


class OrderList(ListItemMixin, db.Model):
    __tablename__ = "order_list"


class OrderListType(TypeItemMixin, db.Model):
    __tablename__ = "order_list_type"


class Product(db.Model):
    __tablename__ = "products"
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    label = db.Column(db.String(255), default="")


def start_api(app, host="0.0.0.0", port=5000):
    api = JsonAdmApi(app, prefix="/jsonadm", DOMAINS=["order", "product"])

    # Expose the database objects as REST API endpoints
    api.expose(
        "order",
        SQLAManager.factory(
            Order,
            "order",
            sub_managers={
                "lists": SQLAManager.factory(
                    OrderList,
                    "order/lists",
                    entity_class=RelationshipRecord,
                    sub_managers={"type": SQLATypeManager.factory(OrderListType, "order/lists/type")},
                )
            },
        ),
    )
    api.expose("product", SQLAManager.factory(Product, "product"))

    db.create_all()
    db.session.add(OrderListType(code="default", domain="product", label="Default"))
    for i in range(3):
        db.session.add(Product(code=f"demo-{i}", label=f"Demo product {i}"))
    db.session.add(Order(status=1, comment="demo order"))
    db.session.commit()

    for refid in (1, 2):
        db.session.add(OrderList(parentid="1", domain="product", refid=str(refid), position=refid, typeid=1))
    db.session.commit()

    print(f"Starting API: http://{host}:{port}/jsonadm")


if __name__ == "__main__":
    HOST = sys.argv[1] if len(sys.argv) > 1 else "0.0.0.0"
    PORT = 5000

    app = Flask("jsonadm Demo Application")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", DEBUG=True)
    db.init_app(app)

    with app.app_context():
        start_api(app, HOST, PORT)
        app.run(host=HOST, port=PORT)
