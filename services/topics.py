# services/topics.py

from models import db, FeedbackTopic

# --- Default topics ------------------------------------------------------------
DEFAULT_TOPICS = [
    ("lyrics", "My lyrics; are there any you like in particular and/or some that pull your attention out of the experience"),
    ("melodies", "Melodies; where is the melodic structure strong and where could it be improved"),
    ("genre", "What genre do you associate with this song"),
    ("placement", "Where might this song play, sporting events, TV show closing credits"),
    ("playlist_artists", "What other artists would be one playlist with this song"),
    ("musicianship", "Overall musicianship; are the vocals and the instrumental performances effectively delivering the song or do either need particular attention"),
    ("vocal_harmonies", "Vocal harmonies; are they strong as they are or how might they be approached more effectively"),
    ("mood", "The Mood of the song, how does the mood seem dense to you is it consistent"),
    ("mix", "The mix; how would you adjust this mix"),
    ("song_structure", "The song structure; verses, choruses, bridges, and so forth, are there changes you'd like to hear in the song's structure"),
    ("song_sections", "Are there certain sections of the song working better for you than others"),
    ("instrumentation_choices", "Instrumentation choices and other possibilities for instrumentation"),
    ("arrangement", "Arrangement; is each instrument playing what it should where it should"),
    ("overall_sound", "Other suggestions about the overall sound or chord progressions among other things they are hearing or how they would approach it"),
    ("tempo", "Tempo; does the tempo feel right or would you adjust it"),
    ("key", "Key; does the key feel right or would you adjust it"),
    ("production", "Production; how would you adjust the production"),
    ("commercial_potential", "Do you hear commercial potential?"),
    ("overall_impressions", "What are your overall impressions?"),
    ("context_comparison", "What do you notice about this song in context with other songs I've shared with you"),
    ("song_strengths", "What are the song's strengths and what would you like to hear more of"),
    ("song_shortcomings", "What shortcomings do you identify and what should I give attention to"),
]


def seed_feedback_topics():
    """Insert or refresh the default topics by key. Returns how many were inserted."""
    existing = {t.key: t for t in FeedbackTopic.query.all()}
    inserted = 0
    for order, (key, label) in enumerate(DEFAULT_TOPICS, start=1):
        topic = existing.get(key)
        if topic:
            topic.label = label
            topic.order = order
            topic.is_active = True
        else:
            db.session.add(FeedbackTopic(key=key, label=label, order=order, is_active=True))
            inserted += 1
    db.session.commit()
    return inserted


def active_topics():
    return FeedbackTopic.query.filter_by(is_active=True).order_by(FeedbackTopic.order.asc()).all()


def serialize_topic(topic):
    return {"id": topic.id, "key": topic.key, "label": topic.label, "order": topic.order, "is_active": topic.is_active}
