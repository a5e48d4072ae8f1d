from uuid import uuid4
from secrets import token_hex
from sqlalchemy import (
    DDL,
    TEXT,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    create_engine,
    event,
    func,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from app.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
    SUBSCRIPTION_FEE,
    LATITUDE_SCALE,
    LONGITUDE_SCALE,
)
from app.src.enums import (
    AccountStatus,
    PlatformType,
    Role,
    SubscriptionStatus,
    CallStatus,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()


def enumCheck(columnName: str, enumClass) -> CheckConstraint:
    """Restrict an integer column to the values of an IntEnum."""
    values = ", ".join(str(int(member)) for member in enumClass)
    return CheckConstraint(
        f"{columnName} IN ({values})", name=f"{columnName}_{enumClass.__name__.lower()}"
    )


# ----------------------------------- Authentication Models ----------------------------------#
class Account(ORMbase):
    """
    Represents the authentication principal of a person using the platform,
    either as a customer or as a vendor.

    The account only holds credentials. Everything visible to other users
    lives in the associated `Profile`, which shares the same primary key.

    Columns:
        id (Uuid):
            Primary key. Randomly generated unique identifier for the account.

        email_id (TEXT):
            Email address used to log in.
            Should conform to RFC 5322 standards (https://en.wikipedia.org/wiki/Email_address).
            Must be unique and not null, maximum length is 256 characters.

        password (TEXT):
            Hashed password used for secure authentication.
            Length must be 8-32 characters before hashing.
            Plaintext passwords are never stored. Argon2 is used for hashing.

        status (Integer):
            Indicates the status of the account.
            Mapped from the `AccountStatus` enum.
            Defaults to `AccountStatus.ACTIVE`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the account is modified.

        created_on (DateTime):
            Timestamp indicating when the account was created.
    """

    __tablename__ = "account"
    __table_args__ = (enumCheck("status", AccountStatus),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    email_id = Column(TEXT, nullable=False, unique=True)
    password = Column(TEXT, nullable=False)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class AccountToken(ORMbase):
    """
    Represents an authentication token issued to an account,
    providing access to the customer and vendor APIs with support for token
    expiration, device tracking, and client metadata tracking.

    Columns:
        id (Uuid):
            Primary key. Unique identifier for this token record.

        account_id (Uuid):
            Foreign key referencing the associated account, its indexed.
            Cascades on delete, if the account is removed, associated tokens are deleted.

        access_token (String):
            Unique, securely generated 64-character hexadecimal access token.
            Automatically generated using a secure random function.

        expires_in (Integer):
            Token expiration time in seconds.

        expires_at (DateTime):
            Token expiration date and time.
            Defines the date and time after which the token becomes invalid.

        platform_type (Integer):
            Enum value indicating the client platform type.
            Defaults to `PlatformType.OTHER`.

        client_details (TEXT):
            Optional description of the client device or environment.
            Maximum 1024 characters long.

        updated_on (DateTime):
            Timestamp automatically updated when the token record is modified.

        created_on (DateTime):
            Timestamp indicating when the token was initially created.
    """

    __tablename__ = "account_token"

    id = Column(Uuid, primary_key=True, default=uuid4)
    account_id = Column(
        Uuid,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Marketplace Models -------------------------------------#
class Profile(ORMbase):
    """
    Represents the public identity of an account, tagged as either a vendor
    or a customer. Every authenticated user may read every profile, but only
    the owner may create or edit it.

    Columns:
        id (Uuid):
            Primary key, identical to the owning `account.id`.
            Cascading deletion is applied when the account is deleted.

        full_name (TEXT):
            Display name of the user.
            Must not be null, maximum length is 32 characters.

        phone_number (TEXT):
            Optional contact number.
            Must be in RFC3966 format (https://datatracker.ietf.org/doc/html/rfc3966).

        role (Integer):
            Mapped from the `Role` enum, restricted by a check constraint.
            Set once at creation and never changed afterwards.

        updated_on (DateTime):
            Overwritten with the transaction time on every update, regardless
            of which other columns changed.

        created_on (DateTime):
            Timestamp indicating when the profile was created.
    """

    __tablename__ = "profile"
    __table_args__ = (enumCheck("role", Role),)

    id = Column(Uuid, ForeignKey("account.id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(TEXT, nullable=False)
    phone_number = Column(TEXT)
    role = Column(Integer, nullable=False)
    # Metadata
    updated_on = Column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Vendor(ORMbase):
    """
    Represents a micro business (UMKM) owned by exactly one vendor profile,
    with an availability flag and the last known position of the vendor.

    Columns:
        id (Uuid):
            Primary key. Unique identifier for the vendor.

        profile_id (Uuid):
            Foreign key referencing the owning profile.
            Unique, one vendor per profile. Cascades on delete.

        business_name (TEXT):
            Name of the business. Must not be null.

        business_type (TEXT):
            Free form category of the business (e.g. food, beverages, crafts).
            Must not be null.

        description (TEXT):
            Business description, defaults to an empty string.

        is_active (Boolean):
            Whether the vendor is currently online and discoverable.
            Defaults to false.

        latitude (Numeric(10, 8)):
            Last known latitude of the vendor.

        longitude (Numeric(11, 8)):
            Last known longitude of the vendor.

        location_updated_on (DateTime):
            When the coordinate pair was last written. The three location
            columns are always written together.

        updated_on (DateTime):
            Overwritten with the transaction time on every update.

        created_on (DateTime):
            Timestamp indicating when the vendor was registered.
    """

    __tablename__ = "vendor"
    __table_args__ = (Index("ix_vendor_location", "latitude", "longitude"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    profile_id = Column(
        Uuid,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    business_name = Column(TEXT, nullable=False)
    business_type = Column(TEXT, nullable=False)
    description = Column(TEXT, default="")
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    # Location
    latitude = Column(Numeric(*LATITUDE_SCALE, asdecimal=False))
    longitude = Column(Numeric(*LONGITUDE_SCALE, asdecimal=False))
    location_updated_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Subscription(ORMbase):
    """
    Represents a paid period of a vendor. A subscription is covering when
    its status is ACTIVE and its end date is today or later; expiry is derived
    at read time, nothing flips the stored status in the background.

    Columns:
        id (Uuid):
            Primary key. Unique identifier for the subscription.

        vendor_id (Uuid):
            Foreign key referencing the vendor, its indexed. Cascades on delete.

        start_date (Date):
            First calendar day covered by the subscription.

        end_date (Date):
            Last calendar day covered by the subscription.
            Must not be earlier than `start_date`.

        amount (Integer):
            Amount paid in rupiah. Defaults to `SUBSCRIPTION_FEE`.

        status (Integer):
            Mapped from the `SubscriptionStatus` enum.
            Defaults to `SubscriptionStatus.PENDING`.

        payment_date (DateTime):
            When the payment was reported by the client.

        created_on (DateTime):
            Timestamp indicating when the subscription was recorded.
    """

    __tablename__ = "subscription"
    __table_args__ = (
        enumCheck("status", SubscriptionStatus),
        CheckConstraint("end_date >= start_date", name="subscription_period"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    vendor_id = Column(
        Uuid,
        ForeignKey("vendor.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    amount = Column(Integer, nullable=False, default=SUBSCRIPTION_FEE)
    status = Column(
        Integer, nullable=False, default=SubscriptionStatus.PENDING, index=True
    )
    payment_date = Column(DateTime(timezone=True))
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Call(ORMbase):
    """
    Represents a request from a customer asking a vendor to come to the
    customer's location.

    The status only moves forward, PENDING -> ACKNOWLEDGED -> COMPLETED,
    and only the owning vendor may move it.

    Columns:
        id (Uuid):
            Primary key. Unique identifier for the call.

        customer_id (Uuid):
            Foreign key referencing the calling profile, its indexed.
            Cascades on delete.

        vendor_id (Uuid):
            Foreign key referencing the called vendor, its indexed.
            Cascades on delete.

        latitude (Numeric(10, 8)):
            Latitude of the customer when the call was placed. Must not be null.

        longitude (Numeric(11, 8)):
            Longitude of the customer when the call was placed. Must not be null.

        status (Integer):
            Mapped from the `CallStatus` enum.
            Defaults to `CallStatus.PENDING`.

        created_on (DateTime):
            When the call was placed. Never modified afterwards.

        acknowledged_on (DateTime):
            When the vendor acknowledged the call.

        completed_on (DateTime):
            When the vendor completed the call.
    """

    __tablename__ = "customer_call"
    __table_args__ = (enumCheck("status", CallStatus),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    customer_id = Column(
        Uuid,
        ForeignKey("profile.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vendor_id = Column(
        Uuid,
        ForeignKey("vendor.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    latitude = Column(Numeric(*LATITUDE_SCALE, asdecimal=False), nullable=False)
    longitude = Column(Numeric(*LONGITUDE_SCALE, asdecimal=False), nullable=False)
    status = Column(Integer, nullable=False, default=CallStatus.PENDING, index=True)
    # Lifecycle timestamps
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
    acknowledged_on = Column(DateTime(timezone=True))
    completed_on = Column(DateTime(timezone=True))


# ----------------------------------- Timestamp Maintenance ----------------------------------#
@event.listens_for(Profile, "before_update")
@event.listens_for(Vendor, "before_update")
def refreshUpdatedOn(mapper, connection, target):
    # Caller supplied values are discarded
    target.updated_on = func.now()


updatedOnFunction = DDL(
    """
    CREATE OR REPLACE FUNCTION update_updated_on_column()
    RETURNS TRIGGER AS $$
    BEGIN
      NEW.updated_on = now();
      RETURN NEW;
    END;
    $$ language 'plpgsql'
    """
)
event.listen(
    ORMbase.metadata,
    "before_create",
    updatedOnFunction.execute_if(dialect="postgresql"),
)
event.listen(
    ORMbase.metadata,
    "after_drop",
    DDL("DROP FUNCTION IF EXISTS update_updated_on_column()").execute_if(
        dialect="postgresql"
    ),
)
for table in (Profile.__table__, Vendor.__table__):
    trigger = DDL(
        f"CREATE TRIGGER update_{table.name}_updated_on BEFORE UPDATE ON {table.name} "
        "FOR EACH ROW EXECUTE FUNCTION update_updated_on_column()"
    )
    event.listen(table, "after_create", trigger.execute_if(dialect="postgresql"))
