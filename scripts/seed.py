# scripts/seed.py
"""
Script para crear el esquema y datos de prueba
"""
from decimal import Decimal

from app.config.database import SessionLocal, init_db
from app.shared.database.models import Division, Buyer, BuyerSite, Article, User
from app.core.auth.service import AuthService


DIVISIONS = ["Kozmetike", "Ushqimore"]

BUYERS = [
    {"code": "0012", "name": "Super Viva", "sites": [("12", "Super Viva Fushë Kosovë"), ("01", "Super Viva Qendër")]},
    {"code": "0007", "name": "Viva Fresh", "sites": []},
]

ARTICLES = [
    {"sku": "JAM001", "name": "Jamnica Orange", "sell_price": Decimal("1.20")},
    {"sku": "MLK010", "name": "Milk 1L", "sell_price": Decimal("0.89")},
]

TEST_USERS = [
    {"email": "admin@local", "password": "admin123", "first_name": "Admin", "last_name": "User", "role": "admin", "division": "Kozmetike"},
    {"email": "lead@local", "password": "lead123", "first_name": "Tea", "last_name": "Lead", "role": "team_lead", "division": "Kozmetike"},
    {"email": "div@local", "password": "div123", "first_name": "Diva", "last_name": "Manager", "role": "division_manager", "division": "Kozmetike"},
    {"email": "dir@local", "password": "dir123", "first_name": "Sale", "last_name": "Director", "role": "sales_director", "division": None},
    {"email": "agent@local", "password": "agent123", "first_name": "Agim", "last_name": "Agent", "role": "agent", "division": "Kozmetike", "pda_number": "PDA-123"},
]


def seed():
    """Crear tablas y datos de prueba (solo si la base está vacía)"""

    init_db()
    db = SessionLocal()

    try:
        existing_users = db.query(User).count()
        if existing_users > 0:
            print(f"✅ Ya existen {existing_users} usuarios en la base de datos")
            return

        divisions = {}
        for name in DIVISIONS:
            division = Division(name=name)
            db.add(division)
            divisions[name] = division

        for buyer_data in BUYERS:
            buyer = Buyer(code=buyer_data["code"], name=buyer_data["name"])
            db.add(buyer)
            for site_code, site_name in buyer_data["sites"]:
                db.add(BuyerSite(buyer=buyer, site_code=site_code, site_name=site_name))

        for article_data in ARTICLES:
            db.add(Article(**article_data))

        db.flush()

        users = {}
        for user_data in TEST_USERS:
            division = divisions.get(user_data["division"]) if user_data["division"] else None
            user = User(
                email=user_data["email"],
                password_hash=AuthService.get_password_hash(user_data["password"]),
                first_name=user_data["first_name"],
                last_name=user_data["last_name"],
                role=user_data["role"],
                division_id=division.id if division else None,
                pda_number=user_data.get("pda_number"),
                is_active=True
            )
            db.add(user)
            users[user_data["role"]] = user
            print(f"✅ Usuario creado: {user_data['email']} / {user_data['password']} ({user_data['role']})")

        db.flush()

        # El team lead de prueba queda como responsable por defecto de su división
        divisions["Kozmetike"].default_team_leader_id = users["team_lead"].id

        db.commit()
        print(f"\n🎉 Datos de prueba creados: {len(DIVISIONS)} divisiones, {len(BUYERS)} compradores, "
              f"{len(ARTICLES)} artículos, {len(TEST_USERS)} usuarios")

    except Exception as e:
        db.rollback()
        print(f"❌ Error creando datos de prueba: {e}")
        raise

    finally:
        db.close()

if __name__ == "__main__":
    seed()
