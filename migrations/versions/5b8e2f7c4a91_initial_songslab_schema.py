"""initial songslab schema: users, tokens, songs, sounding board, discussion, feedback ledger

Revision ID: 5b8e2f7c4a91
Revises:
Create Date: 2026-02-02 10:14:37.512904

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '5b8e2f7c4a91'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('songwriter', 'sounding_board_member', 'admin', name='user_role')
contact_preference = sa.Enum('email', 'sms', 'whatsapp', name='contact_preference')
membership_status = sa.Enum('pending', 'approved', 'rejected', name='membership_status')
feedback_visibility = sa.Enum('private', 'group', name='feedback_visibility')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=200), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('profile_image', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('email', name=op.f('uq_users__email')),
        sa.UniqueConstraint('username', name=op.f('uq_users__username')),
    )

    op.create_table(
        'feedback_topics',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('label', sa.Text(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_feedback_topics')),
        sa.UniqueConstraint('key', name=op.f('uq_feedback_topics__key')),
    )

    op.create_table(
        'personal_access_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                name=op.f('fk_personal_access_tokens__user_id__users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_personal_access_tokens')),
        sa.UniqueConstraint('token', name=op.f('uq_personal_access_tokens__token')),
    )
    op.create_index(op.f('ix_personal_access_tokens_user_id'), 'personal_access_tokens', ['user_id'])

    op.create_table(
        'songs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('development_stage', sa.String(length=50), nullable=True),
        sa.Column('custom_feedback_request', sa.Text(), nullable=True),
        sa.Column('share_token', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                name=op.f('fk_songs__user_id__users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_songs')),
        sa.UniqueConstraint('share_token', name=op.f('uq_songs__share_token')),
    )
    op.create_index(op.f('ix_songs_user_id'), 'songs', ['user_id'])

    op.create_table(
        'song_feedback_requests',
        sa.Column('song_id', sa.Integer(), nullable=False),
        sa.Column('feedback_topic_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['feedback_topic_id'], ['feedback_topics.id'],
                                name=op.f('fk_song_feedback_requests__feedback_topic_id__feedback_topics'),
                                ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['song_id'], ['songs.id'],
                                name=op.f('fk_song_feedback_requests__song_id__songs'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('song_id', 'feedback_topic_id', name=op.f('pk_song_feedback_requests')),
    )

    op.create_table(
        'sounding_board_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('song_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('contact_preference', contact_preference, nullable=False),
        sa.Column('status', membership_status, nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('responded_by', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['responded_by'], ['users.id'],
                                name=op.f('fk_sounding_board_members__responded_by__users'), ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['song_id'], ['songs.id'],
                                name=op.f('fk_sounding_board_members__song_id__songs'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                name=op.f('fk_sounding_board_members__user_id__users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sounding_board_members')),
        sa.UniqueConstraint('song_id', 'email', name='uq_sounding_board_members__song_email'),
    )
    op.create_index(op.f('ix_sounding_board_members_song_id'), 'sounding_board_members', ['song_id'])
    op.create_index(op.f('ix_sounding_board_members_user_id'), 'sounding_board_members', ['user_id'])
    op.create_index(op.f('ix_sounding_board_members_email'), 'sounding_board_members', ['email'])
    op.create_index(op.f('ix_sounding_board_members_status'), 'sounding_board_members', ['status'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('song_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('depth', sa.Integer(), nullable=False),
        sa.Column('author_kind', sa.String(length=10), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('sounding_board_member_id', sa.Integer(), nullable=True),
        sa.Column('feedback_topic_id', sa.Integer(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(author_kind = 'user' AND user_id IS NOT NULL AND sounding_board_member_id IS NULL) OR "
            "(author_kind = 'member' AND sounding_board_member_id IS NOT NULL AND user_id IS NULL)",
            name=op.f('ck_comments__single_author'),
        ),
        sa.CheckConstraint(
            "(parent_id IS NULL AND depth = 0) OR (parent_id IS NOT NULL AND depth > 0)",
            name=op.f('ck_comments__depth_matches_parent'),
        ),
        sa.ForeignKeyConstraint(['feedback_topic_id'], ['feedback_topics.id'],
                                name=op.f('fk_comments__feedback_topic_id__feedback_topics'), ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['parent_id'], ['comments.id'],
                                name=op.f('fk_comments__parent_id__comments'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['song_id'], ['songs.id'],
                                name=op.f('fk_comments__song_id__songs'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sounding_board_member_id'], ['sounding_board_members.id'],
                                name=op.f('fk_comments__sounding_board_member_id__sounding_board_members'),
                                ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                name=op.f('fk_comments__user_id__users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_comments')),
    )
    op.create_index(op.f('ix_comments_parent_id'), 'comments', ['parent_id'])
    op.create_index(op.f('ix_comments_user_id'), 'comments', ['user_id'])
    op.create_index(op.f('ix_comments_sounding_board_member_id'), 'comments', ['sounding_board_member_id'])
    op.create_index('ix_comments_song_parent', 'comments', ['song_id', 'parent_id'])
    op.create_index('ix_comments_song_created', 'comments', ['song_id', 'created_at'])

    op.create_table(
        'feedback_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('song_id', sa.Integer(), nullable=False),
        sa.Column('sounding_board_member_id', sa.Integer(), nullable=False),
        sa.Column('feedback_topic_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('visibility', feedback_visibility, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['feedback_topic_id'], ['feedback_topics.id'],
                                name=op.f('fk_feedback_entries__feedback_topic_id__feedback_topics'),
                                ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['song_id'], ['songs.id'],
                                name=op.f('fk_feedback_entries__song_id__songs'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sounding_board_member_id'], ['sounding_board_members.id'],
                                name=op.f('fk_feedback_entries__sounding_board_member_id__sounding_board_members'),
                                ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_feedback_entries')),
        sa.UniqueConstraint('song_id', 'sounding_board_member_id', 'feedback_topic_id',
                            name='uq_feedback_entries__song_member_topic'),
    )
    op.create_index(op.f('ix_feedback_entries_song_id'), 'feedback_entries', ['song_id'])
    op.create_index(op.f('ix_feedback_entries_sounding_board_member_id'), 'feedback_entries', ['sounding_board_member_id'])


def downgrade():
    op.drop_table('feedback_entries')
    op.drop_table('comments')
    op.drop_table('sounding_board_members')
    op.drop_table('song_feedback_requests')
    op.drop_table('songs')
    op.drop_table('personal_access_tokens')
    op.drop_table('feedback_topics')
    op.drop_table('users')

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum in (feedback_visibility, membership_status, contact_preference, user_role):
            enum.drop(bind, checkfirst=True)
