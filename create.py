# create.py: seed a user (and vendor profile) and print its API token
from eventdesk import create_app
from eventdesk.extensions import db
from eventdesk.models.user import User
from eventdesk.services.vendor_accounts import create_vendor


def main():
    app = create_app()
    with app.app_context():
        db.create_all()
        email = input("Email: ").strip().lower()
        name = input("Full name: ").strip()
        role = (input("Role [client/vendor/admin] (client): ").strip().lower() or "client")

        # Check existing
        if User.query.filter_by(email=email).first():
            print("User with that email already exists.")
            return

        user = User(name=name, email=email, role=role)
        db.session.add(user)
        db.session.commit()
        if role == "vendor":
            business = input("Business name: ").strip() or name
            create_vendor(user, business, email)  # also sends the welcome email
        print(f"{role.title()} {email} created. API token: {user.api_token}")

if __name__ == "__main__":
    main()
