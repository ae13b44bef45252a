def session_view(session, lifecycle, bookings, spaces, cache=None):
    """
    Session dict joined with display fields read at query time.

    `cache` may be shared across a listing so each reservation/space is
    fetched once per request.
    """
    cache = cache if cache is not None else {}
    data = session.to_dict()
    data.update(lifecycle.live_figures(session))

    res_key = ('reservation', session.reservation_id)
    if res_key not in cache:
        cache[res_key] = bookings.get_reservation(session.reservation_id)
    reservation = cache[res_key]

    space_id = session.space_id or (reservation.space_id if reservation else None)
    space_key = ('space', space_id)
    if space_id is not None and space_key not in cache:
        cache[space_key] = spaces.get_space(space_id)
    space = cache.get(space_key)

    data.update({
        'user_name': reservation.owner.full_name if reservation else '',
        'user_email': reservation.owner.email if reservation else '',
        'event_name': reservation.event_name if reservation else '',
        'space_id': space_id,
        'space_name': space.name if space else '',
    })
    return data
